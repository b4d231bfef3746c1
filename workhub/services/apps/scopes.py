"""
OAuth scope utilities for third-party apps.

Scopes are flat capability strings such as ``issues:read``. They are stored
as lists on installations and travel as space-separated strings in OAuth
responses; every helper here accepts either form and works on the
normalized list (trimmed, lowercased, de-duplicated, order preserved).
"""

from typing import Dict, Iterable, List, Optional, Union

ScopeInput = Optional[Union[str, Iterable[str]]]

SUPPORTED_SCOPES = (
    "user:read",
    "user:write",
    "issues:read",
    "issues:write",
    "posts:read",
    "posts:write",
    "workspace:read",
    "workspace:write",
    "profile:read",
    "profile:write",
    "comments:read",
    "comments:write",
    "leave:read",
    "leave:write",
    "projects:read",
    "projects:write",
    "views:read",
    "views:write",
    "labels:read",
    "labels:write",
    "notes:read",
    "notes:write",
    "knowledge:read",
    "prompts:read",
    "secrets:read",
)

SCOPE_DESCRIPTIONS: Dict[str, str] = {
    "issues:read": "Read access to issues",
    "issues:write": "Create and modify issues",
    "posts:read": "Read access to posts",
    "posts:write": "Create and modify posts",
    "workspace:read": "Read access to workspace information",
    "workspace:write": "Modify workspace settings",
    "profile:read": "Read access to user profiles",
    "profile:write": "Modify user profiles",
    "comments:read": "Read access to comments",
    "comments:write": "Create and modify comments",
    "leave:read": "Read access to leave requests",
    "leave:write": "Create and modify leave requests",
    "notes:read": "Read notes and knowledge base articles",
    "notes:write": "Create and modify notes",
    "knowledge:read": "Access knowledge base and documentation",
    "prompts:read": "Read AI system prompts and context",
    "secrets:read": "Read encrypted secrets (requires explicit grant)",
}


def normalize_scopes(scopes: ScopeInput) -> List[str]:
    """
    Normalize scopes from a string or iterable to a list of unique scopes.

    >>> normalize_scopes("issues:read  Issues:Read posts:write")
    ['issues:read', 'posts:write']
    """
    if not scopes:
        return []

    if isinstance(scopes, str):
        parts = scopes.split()
    else:
        parts = [
            piece
            for scope in scopes
            if isinstance(scope, str)
            for piece in scope.split()
        ]

    return list(dict.fromkeys(part.strip().lower() for part in parts if part.strip()))


def scopes_to_string(scopes: ScopeInput) -> str:
    """Space-separated form used in OAuth responses."""
    return " ".join(normalize_scopes(scopes))


def scopes_from_string(scope_string: Optional[str]) -> List[str]:
    return normalize_scopes(scope_string)


def has_scope(target_scope: str, scopes: ScopeInput) -> bool:
    """True if ``target_scope`` is in ``scopes``."""
    normalized = normalize_scopes(target_scope)
    if len(normalized) != 1:
        return False
    return normalized[0] in normalize_scopes(scopes)


def missing_scopes(required_scopes: ScopeInput, provided_scopes: ScopeInput) -> List[str]:
    """Required scopes that ``provided_scopes`` does not cover, in request order."""
    provided = set(normalize_scopes(provided_scopes))
    return [scope for scope in normalize_scopes(required_scopes) if scope not in provided]


def has_all_scopes(required_scopes: ScopeInput, provided_scopes: ScopeInput) -> bool:
    """True if every required scope is provided (empty requirement is satisfied)."""
    return not missing_scopes(required_scopes, provided_scopes)


def is_supported_scope(scope: str) -> bool:
    normalized = normalize_scopes(scope)
    return len(normalized) == 1 and normalized[0] in SUPPORTED_SCOPES


def validate_scopes(scopes: ScopeInput) -> Dict[str, object]:
    """
    Split scopes into supported and unsupported ones.

    ``valid`` is True only when at least one scope is given and all are supported.
    """
    normalized = normalize_scopes(scopes)
    valid_scopes = [scope for scope in normalized if is_supported_scope(scope)]
    invalid_scopes = [scope for scope in normalized if not is_supported_scope(scope)]
    return {
        "valid": not invalid_scopes and bool(valid_scopes),
        "valid_scopes": valid_scopes,
        "invalid_scopes": invalid_scopes,
        "normalized_scopes": normalized,
    }


def filter_granted_scopes(requested_scopes: ScopeInput, available_scopes: ScopeInput) -> List[str]:
    """Requested scopes that are also available, in request order."""
    available = set(normalize_scopes(available_scopes))
    return [scope for scope in normalize_scopes(requested_scopes) if scope in available]


def merge_scopes(*scope_sets: ScopeInput) -> List[str]:
    merged: List[str] = []
    for scopes in scope_sets:
        merged.extend(normalize_scopes(scopes))
    return list(dict.fromkeys(merged))


def get_scope_description(scope: str) -> str:
    return SCOPE_DESCRIPTIONS.get(scope, f"Access to {scope}")
