"""API key check shared by every report route."""

import logging
import secrets

from fastapi import HTTPException, Header

from clubgoals.config import settings

logger = logging.getLogger(__name__)


def _presented_key(x_api_key: str | None, authorization: str | None) -> str | None:
    if x_api_key is not None:
        return x_api_key
    if authorization and authorization.startswith("Bearer "):
        return authorization[len("Bearer "):].strip()
    return None


async def verify_api_key(
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
    authorization: str | None = Header(default=None),
) -> str:
    """Accept `X-API-Key: <key>` or `Authorization: Bearer <key>`.

    Open access when no API_KEY is configured.
    """
    if settings.api_key is None:
        return ""

    key = _presented_key(x_api_key, authorization)
    if key is None or not secrets.compare_digest(key, settings.api_key):
        logger.info("Rejected request with %s API key", "missing" if key is None else "wrong")
        raise HTTPException(status_code=401, detail="Invalid or missing API key")
    return key
