import hashlib
import hmac
from typing import Annotated, Optional

from fastapi import Header, Request
from loguru import logger

from render_worker.errors import InvalidApiKey, MissingApiKey


def hash_api_key(key: str) -> str:
    """Hash an API key using SHA256."""
    return hashlib.sha256(key.encode()).hexdigest()


async def require_api_key(
    request: Request,
    x_api_key: Annotated[Optional[str], Header(alias="x-api-key")] = None,
) -> None:
    """Reject the request unless x-api-key equals the hashed server secret."""
    if not x_api_key:
        logger.bind(path=request.url.path).warning("request without api key")
        raise MissingApiKey()

    expected = request.app.state.api_key_hash
    if not hmac.compare_digest(x_api_key.strip().lower().encode(), expected.encode()):
        logger.bind(path=request.url.path).warning("request with invalid api key")
        raise InvalidApiKey()
