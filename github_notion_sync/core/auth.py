import secrets

from fastapi import HTTPException, Security, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from github_notion_sync.config import settings


# auto_error=False so requests without credentials reach us when auth is off
security = HTTPBasic(auto_error=False)


def _matches(supplied: str, expected: str) -> bool:
    return secrets.compare_digest(supplied.encode("utf8"), expected.encode("utf8"))


def verify_credentials(credentials: HTTPBasicCredentials = Security(security)) -> str:
    """Check HTTP Basic credentials against the configured operator account."""
    if not settings.auth_enabled:
        return "anonymous"

    if credentials is None:
        valid = False
    else:
        username_ok = _matches(credentials.username, settings.auth_username)
        password_ok = _matches(credentials.password, settings.auth_password)
        valid = username_ok and password_ok

    if not valid:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Basic"},
        )

    return credentials.username
