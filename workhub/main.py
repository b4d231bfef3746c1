from dotenv import load_dotenv


from fastapi import FastAPI

from workhub.api.api_v1 import router as api_v1
from workhub.core.config import settings
from workhub.core.lifespan import lifespan
from workhub.dependencies.app_auth import AppAuthError, app_auth_error_handler

load_dotenv()


app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)
app.add_exception_handler(AppAuthError, app_auth_error_handler)


@app.get("/")
def root():
    return {"message": "Hello from workhub-sync!"}


app.include_router(api_v1)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
