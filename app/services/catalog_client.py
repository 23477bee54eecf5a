"""HTTP client for the external product catalog (an n8n webhook).

The endpoint returns either a bare JSON list of product records or an object
with the list under ``products``.  Records are returned raw; normalization
happens in :mod:`app.services.normalizer`.
"""

import logging
from typing import Any

import httpx

from app.errors import ConfigurationError, SourceUnavailableError

logger = logging.getLogger(__name__)


def extract_records(data: Any) -> list[dict[str, Any]]:
    """Unwrap the ``products`` envelope and check every entry is an object."""
    if isinstance(data, dict) and "products" in data:
        data = data["products"]
    if not isinstance(data, list):
        raise SourceUnavailableError(
            f"Catalog source returned {type(data).__name__}, expected a list of products"
        )
    for position, item in enumerate(data):
        if not isinstance(item, dict):
            raise SourceUnavailableError(
                f"Catalog record at position {position} is {type(item).__name__}, expected an object"
            )
    return data


class CatalogClient:
    """Async client for the catalog source.

    Parameters
    ----------
    url:
        Full URL of the catalog endpoint.  An empty value is accepted at
        construction time and reported as :class:`ConfigurationError` when a
        fetch is attempted.
    timeout:
        Per-request timeout in seconds.
    """

    def __init__(self, url: str, timeout: float = 30.0) -> None:
        self.url = url
        self._client = httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    async def close(self) -> None:
        """Close the underlying HTTP client and release resources."""
        await self._client.aclose()

    async def fetch_products(self) -> list[dict[str, Any]]:
        """Fetch the full record set from the catalog source.

        Raises
        ------
        ConfigurationError
            When no catalog URL is configured.
        SourceUnavailableError
            When the request fails, the server answers with a non-2xx status,
            or the body is not a list of product objects.
        """
        if not self.url:
            raise ConfigurationError("CATALOG_SOURCE_URL environment variable not set")

        try:
            response = await self._client.get(self.url)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise SourceUnavailableError(
                f"Catalog source returned {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise SourceUnavailableError(f"Catalog source unreachable: {e}") from e
        except ValueError as e:
            raise SourceUnavailableError(f"Catalog source returned invalid JSON: {e}") from e

        records = extract_records(data)
        logger.info("Fetched %d records from catalog source.", len(records))
        return records
