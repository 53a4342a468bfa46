import secrets

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from presale_radio.config import settings
from presale_radio.core.exceptions import ForbiddenError, UnauthorizedError
from presale_radio.db.session import get_db  # noqa: F401  (re-exported for routers)

bearer_scheme = HTTPBearer(auto_error=False)


async def require_admin(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    """Guard for radio/live control endpoints.

    User accounts live in the marketplace; this service only checks the shared
    admin token the marketplace forwards on behalf of signed-in admins/artists.
    """
    if not settings.admin_enabled:
        raise ForbiddenError("Radio administration is disabled (ADMIN_API_TOKEN not set)")
    if credentials is None:
        raise UnauthorizedError()
    if not secrets.compare_digest(credentials.credentials, settings.ADMIN_API_TOKEN):
        raise UnauthorizedError("Invalid admin token")
    return credentials.credentials
