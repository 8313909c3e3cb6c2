"""Async FHIR client for patient lookups.

Reads and searches resources on a FHIR R4 server (Aidbox in deployment)
over httpx with HTTP basic auth and bounded retries on transport errors.
"""

import re
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

import httpx

from ignis_auth.utils.exceptions import FHIRClientError
from ignis_auth.utils.logging import get_logger

logger = get_logger(__name__)

NOT_FOUND_STATUSES = (404, 410)

# Logical id syntax from the FHIR R4 datatype definition
RESOURCE_ID_PATTERN = re.compile(r"^[A-Za-z0-9\-.]{1,64}$")


def is_valid_resource_id(resource_id: str) -> bool:
    return bool(RESOURCE_ID_PATTERN.fullmatch(resource_id))


class FHIRClient:
    """Async FHIR client for real server interactions."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 20,
        max_retries: int = 2,
        username: Optional[str] = None,
        password: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize FHIR client.

        Args:
            base_url: Base URL of the FHIR server
            timeout: Request timeout in seconds
            max_retries: Maximum number of attempts per request
            username: Basic auth user
            password: Basic auth password
            transport: Optional httpx transport (tests use MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self._auth = httpx.BasicAuth(username, password or "") if username else None
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers={
                    "Accept": "application/fhir+json",
                    "Content-Type": "application/fhir+json",
                },
                auth=self._auth,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _get(self, path: str, params: Optional[Dict[str, str]] = None) -> httpx.Response:
        client = await self._get_client()
        url = urljoin(self.base_url + "/", path)

        for attempt in range(self.max_retries):
            try:
                return await client.get(url, params=params)
            except httpx.RequestError as e:
                logger.warning(
                    "fhir_request_error", path=path, attempt=attempt + 1, error=str(e)
                )
                if attempt == self.max_retries - 1:
                    raise FHIRClientError(f"Failed to connect to FHIR server: {e}") from e

        raise FHIRClientError("FHIR request failed after all retries")

    async def read_resource(
        self, resource_type: str, resource_id: str
    ) -> Optional[Dict[str, Any]]:
        """Read a single resource by id.

        Args:
            resource_type: FHIR resource type, e.g. "Patient"
            resource_id: Logical id

        Returns:
            Resource JSON, or None when the server reports it missing

        Raises:
            ValueError: if resource_id is not a valid FHIR logical id
        """
        if not is_valid_resource_id(resource_id):
            raise ValueError(f"Invalid {resource_type} id")
        response = await self._get(f"{resource_type}/{resource_id}")

        if response.status_code in NOT_FOUND_STATUSES:
            return None
        if response.status_code != 200:
            raise FHIRClientError(
                f"Failed to read {resource_type}: {response.status_code}",
                status_code=response.status_code,
            )

        result: Dict[str, Any] = response.json()
        return result

    async def search(
        self, resource_type: str, params: Dict[str, str]
    ) -> List[Dict[str, Any]]:
        """Search resources and return the matching entries of the Bundle.

        Args:
            resource_type: FHIR resource type
            params: Search parameters

        Returns:
            Resources of the requested type contained in the search Bundle
        """
        response = await self._get(resource_type, params=params)

        if response.status_code != 200:
            raise FHIRClientError(
                f"Search on {resource_type} failed: {response.status_code}",
                status_code=response.status_code,
            )

        bundle: Dict[str, Any] = response.json()
        return [
            entry["resource"]
            for entry in bundle.get("entry") or []
            if isinstance(entry.get("resource"), dict)
            and entry["resource"].get("resourceType") == resource_type
        ]
