"""
OAuth access-token authentication for third-party app API requests.

Resolves ``Authorization: Bearer <token>`` to an app installation, enforces
expiry, installation/app status and scopes, and builds the AppAuthContext
that handlers receive. Failures are returned as structured AuthError values,
never raised.
"""

import hmac
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Tuple

from sqlalchemy.orm import selectinload
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession
from starlette.requests import Request

from workhub.core.crypto import InvalidToken, decrypt_token, mask_token
from workhub.core.logging import get_logger
from workhub.db.models._base import utcnow
from workhub.db.models.apps import AppInstallation, AppStatus, InstallationStatus
from workhub.db.models.workspace import User
from workhub.schemas.apps import (
    AppAuthContext,
    AppInfo,
    InstallationInfo,
    TokenInfo,
    UserInfo,
    WorkspaceInfo,
)
from workhub.services.apps.scopes import (
    ScopeInput,
    has_all_scopes,
    has_scope,
    missing_scopes,
    normalize_scopes,
)

logger = get_logger(__name__)

BEARER_PREFIX = "Bearer "

# Error codes
MISSING_TOKEN = "missing_token"
INVALID_TOKEN = "invalid_token"
TOKEN_EXPIRED = "token_expired"
INSTALLATION_INACTIVE = "installation_inactive"
APP_INACTIVE = "app_inactive"
INSUFFICIENT_SCOPE = "insufficient_scope"
SERVER_ERROR = "server_error"


@dataclass(frozen=True)
class AuthError:
    code: str
    message: str
    status_code: int


@dataclass(frozen=True)
class AuthResult:
    success: bool
    context: Optional[AppAuthContext] = None
    error: Optional[AuthError] = None

    @classmethod
    def failure(cls, code: str, message: str, status_code: int) -> "AuthResult":
        return cls(success=False, error=AuthError(code, message, status_code))


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops tzinfo; stored values are UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


async def authenticate_app_request(
    request: Request,
    session: AsyncSession,
    required_scopes: ScopeInput = None,
    allow_expired: bool = False,
) -> AuthResult:
    """
    Extract and validate the OAuth access token of an app request.

    Checks run in order and stop at the first failure: header present,
    token non-empty, token known, not expired (unless ``allow_expired``),
    installation ACTIVE, app PUBLISHED, scopes sufficient.

    Args:
        request: The incoming request.
        session: Database session used for the token lookup.
        required_scopes: Scope or scopes the caller must hold (string or list).
        allow_expired: Accept tokens past ``token_expires_at``.

    Returns:
        AuthResult with ``context`` on success or ``error`` on failure.
        Unexpected exceptions become ``server_error`` (500).
    """
    try:
        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith(BEARER_PREFIX):
            return AuthResult.failure(
                MISSING_TOKEN,
                "Missing or invalid Authorization header. Expected: Bearer <token>",
                401,
            )

        token = auth_header[len(BEARER_PREFIX) :].strip()
        if not token:
            return AuthResult.failure(MISSING_TOKEN, "Access token is required", 401)

        match = await _find_installation_by_access_token(session, token)
        if match is None:
            return AuthResult.failure(
                INVALID_TOKEN, "Invalid or expired access token", 401
            )
        installation, user = match

        expires_at = _as_utc(installation.token_expires_at)
        if not allow_expired and expires_at is not None and expires_at < utcnow():
            return AuthResult.failure(TOKEN_EXPIRED, "Access token has expired", 401)

        if installation.status != InstallationStatus.ACTIVE:
            return AuthResult.failure(
                INSTALLATION_INACTIVE, "App installation is not active", 403
            )

        if installation.app is None or installation.app.status != AppStatus.PUBLISHED:
            return AuthResult.failure(APP_INACTIVE, "App is not active", 403)

        required = normalize_scopes(required_scopes)
        if required:
            missing = missing_scopes(required, installation.scopes)
            if missing:
                return AuthResult.failure(
                    INSUFFICIENT_SCOPE,
                    f"Insufficient scope. Missing: {', '.join(missing)}",
                    403,
                )

        return AuthResult(success=True, context=_build_context(installation, user))

    except Exception:
        logger.error("App authentication error", exc_info=True)
        return AuthResult.failure(
            SERVER_ERROR, "Internal server error during authentication", 500
        )


async def _find_installation_by_access_token(
    session: AsyncSession, token: str
) -> Optional[Tuple[AppInstallation, User]]:
    """
    Find the ACTIVE installation whose stored token decrypts to ``token``.

    Stored tokens are Fernet-encrypted (non-deterministic), so every active
    installation is decrypted and compared. Installations that fail to
    decrypt, or whose installing user no longer exists, are skipped.
    """
    result = await session.exec(
        select(AppInstallation)
        .options(
            selectinload(AppInstallation.app),
            selectinload(AppInstallation.workspace),
        )
        .where(
            col(AppInstallation.access_token).is_not(None),
            AppInstallation.status == InstallationStatus.ACTIVE.value,
        )
        .order_by(AppInstallation.id)
    )

    for installation in result.all():
        try:
            stored_token = decrypt_token(installation.access_token)
        except InvalidToken:
            logger.warning(
                "Failed to decrypt access token for installation %s", installation.id
            )
            continue

        if not hmac.compare_digest(stored_token.encode(), token.encode()):
            continue

        user = await session.get(User, installation.installed_by_id)
        if user is None:
            logger.warning(
                "Installation %s matched token %s but user %s is missing",
                installation.id,
                mask_token(token),
                installation.installed_by_id,
            )
            continue

        return installation, user

    return None


def _build_context(installation: AppInstallation, user: User) -> AppAuthContext:
    app = installation.app
    workspace = installation.workspace
    scopes = list(installation.scopes or [])
    return AppAuthContext(
        installation=InstallationInfo(
            id=installation.id,
            app_id=installation.app_id,
            workspace_id=installation.workspace_id,
            user_id=installation.installed_by_id,
            scopes=scopes,
            status=installation.status,
        ),
        app=AppInfo(id=app.id, slug=app.slug, name=app.name, status=app.status),
        workspace=WorkspaceInfo(id=workspace.id, slug=workspace.slug, name=workspace.name),
        user=UserInfo(id=user.id, email=user.email, name=user.name),
        token=TokenInfo(
            scopes=scopes, expires_at=_as_utc(installation.token_expires_at)
        ),
    )


def context_has_scope(context: AppAuthContext, scope: str) -> bool:
    """True if the authenticated token carries ``scope``."""
    return has_scope(scope, context.token.scopes)


def context_has_all_scopes(context: AppAuthContext, scopes: ScopeInput) -> bool:
    return has_all_scopes(scopes, context.token.scopes)
