"""
HTTP Basic auth for the operator routes (status, manual job runs).
The eBay callback routes stay public because eBay redirects browsers to them.
"""

import secrets

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from dropsync.core.config import Settings, get_settings

security = HTTPBasic()

DEV_PASSWORD = "changeme"


def _same(given: str, expected: str) -> bool:
    return secrets.compare_digest(given.encode("utf8"), expected.encode("utf8"))


def _operator_password(settings: Settings) -> str:
    if settings.BASIC_AUTH_PASSWORD:
        return settings.BASIC_AUTH_PASSWORD
    if settings.ENVIRONMENT == "production":
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Basic auth password not configured"
        )
    return DEV_PASSWORD


def get_current_username(credentials: HTTPBasicCredentials = Depends(security)) -> str:
    settings = get_settings()
    password = _operator_password(settings)

    # Both comparisons always run
    username_ok = _same(credentials.username, settings.BASIC_AUTH_USERNAME)
    password_ok = _same(credentials.password, password)
    if not (username_ok and password_ok):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Basic"},
        )

    return credentials.username


def require_auth():
    """
    Usage: app.include_router(router, dependencies=[require_auth()])
    """
    return Depends(get_current_username)
