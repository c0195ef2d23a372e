from fastapi import Header

from allerguard.errors import AuthError


def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Caller identity, set by the upstream session/identity provider."""
    if not x_user_id or not x_user_id.strip():
        raise AuthError()
    return x_user_id.strip()
