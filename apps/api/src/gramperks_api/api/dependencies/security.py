from fastapi import Header, HTTPException, status

from gramperks_api.core.settings import settings


async def require_admin_api_key(x_api_key: str = Header("", alias="X-API-Key")) -> None:
    """Gate producer and operator endpoints behind the shared admin key.

    When no key is configured the gate is open in development only.
    """

    if not settings.admin_api_key:
        if settings.environment == "development":
            return
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin API key not configured",
        )

    if x_api_key != settings.admin_api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
        )
