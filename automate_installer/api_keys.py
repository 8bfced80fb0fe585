"""API key validation against the provider APIs."""

import logging

import httpx
from tenacity import RetryError, retry, retry_if_exception_type, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)

ANTHROPIC_MODELS_URL = "https://api.anthropic.com/v1/models"
ANTHROPIC_VERSION = "2023-06-01"
OPENAI_MODELS_URL = "https://api.openai.com/v1/models"

PROVIDERS = ("anthropic", "openai")
TIMEOUT = httpx.Timeout(15.0, connect=5.0)


@retry(
    stop=stop_after_attempt(2),
    wait=wait_exponential(min=1, max=5),
    retry=retry_if_exception_type((httpx.ConnectError, httpx.TimeoutException)),
)
async def _request_status(provider: str, key: str) -> int:
    async with httpx.AsyncClient(timeout=TIMEOUT) as client:
        if provider == "anthropic":
            # Listing models needs a valid key but no particular model
            response = await client.get(
                ANTHROPIC_MODELS_URL,
                headers={"x-api-key": key, "anthropic-version": ANTHROPIC_VERSION},
            )
        else:
            response = await client.get(
                OPENAI_MODELS_URL,
                headers={"Authorization": f"Bearer {key}"},
            )
    return response.status_code


async def validate_api_key(provider: str, key: str) -> bool:
    """Return True if *key* is accepted by *provider* ('anthropic' or 'openai')."""
    if provider not in PROVIDERS:
        raise ValueError(f"Unknown provider: {provider}")

    try:
        status = await _request_status(provider, key)
    except (httpx.HTTPError, RetryError) as e:
        logger.warning("API key validation for %s failed: %s", provider, e)
        return False

    if status != 200:
        logger.info("%s rejected the API key (HTTP %d)", provider, status)
    return status == 200
