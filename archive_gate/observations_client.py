"""Outside Observations client for archive-gate.

Forwards comparison and vector-store requests to the external AI service,
keeping the API key server-side. Each request is sent once and the upstream
response is relayed as-is; upstream failures are normalised into
ObservationsAPIError so the routes can answer with a structured JSON error.
"""

import logging
from typing import Any, NamedTuple, Optional
from urllib.parse import quote

import httpx

from archive_gate.config import get_settings

logger = logging.getLogger(__name__)


COMPARE_IMAGES_PATH = "/api/compare-images"
COMPARE_ITEMS_PATH = "/api/compare-items"
VECTOR_STORE_QUERY_PATH = "/api/vector_store/query"
VECTOR_STORE_ADD_PATH = "/api/vector_store/add_new_image"
VECTOR_STORE_UPDATE_PATH = "/api/vector_store/update_item"
VECTOR_STORE_ALL_PATH = "/api/vector_store/get_all_images"
VECTOR_STORE_DELETE_PATH = "/api/vector_store/delete_one_image"


class MissingConfigMessages(NamedTuple):
    """Errors reported when the API key or base URL is unset."""

    api_key: str
    base_url: str


COMPARE_CONFIG_MESSAGES = MissingConfigMessages(
    api_key="API key is not configured. Please set OUTSIDE_OBSERVATIONS_API_KEY "
    "in your environment variables.",
    base_url="API base URL is not configured. Please set OUTSIDE_OBSERVATIONS_API_BASE_URL "
    "in your environment variables.",
)
QUERY_CONFIG_MESSAGES = MissingConfigMessages(
    api_key="Vector store API key is not configured. Please set OUTSIDE_OBSERVATIONS_API_KEY "
    "in your environment variables.",
    base_url=COMPARE_CONFIG_MESSAGES.base_url,
)
SERVER_CONFIG_MESSAGES = MissingConfigMessages(
    api_key="API key is not configured on the server. Please set OUTSIDE_OBSERVATIONS_API_KEY "
    "in your environment variables.",
    base_url="API base URL is not configured on the server. Please set "
    "OUTSIDE_OBSERVATIONS_API_BASE_URL in your environment variables.",
)
UPDATE_CONFIG_MESSAGES = MissingConfigMessages(
    api_key="API key is not configured. Set OUTSIDE_OBSERVATIONS_API_KEY.",
    base_url="API base URL is not configured. Set OUTSIDE_OBSERVATIONS_API_BASE_URL.",
)


class ObservationsAPIError(Exception):
    """Raised when a proxied request cannot be completed."""

    def __init__(self, message: str, status_code: int = 500, details: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ObservationsClient:
    """Thin async proxy to the Outside Observations API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            base_url: Service root; falls back to OUTSIDE_OBSERVATIONS_API_BASE_URL.
            api_key: Shared key sent as X-API-Key; falls back to OUTSIDE_OBSERVATIONS_API_KEY.
            timeout_s: Per-request timeout in seconds.
            transport: Optional httpx transport (tests use httpx.MockTransport).
        """
        settings = get_settings()
        self.base_url = base_url if base_url is not None else settings.outside_observations_api_base_url
        self.api_key = api_key if api_key is not None else settings.outside_observations_api_key
        self.timeout_s = timeout_s if timeout_s is not None else settings.observations_timeout_s
        self._client = httpx.AsyncClient(timeout=self.timeout_s, transport=transport)

    @property
    def configured(self) -> bool:
        return bool(self.api_key) and bool(self.base_url)

    def check_configured(self, messages: MissingConfigMessages = COMPARE_CONFIG_MESSAGES) -> None:
        """Fail with a 500 when the API key or base URL is missing.

        The key is checked first. Routes call this before looking at the
        request body.

        Raises:
            ObservationsAPIError: With the operation's own wording.
        """
        if not self.api_key:
            raise ObservationsAPIError(messages.api_key)
        if not self.base_url:
            raise ObservationsAPIError(messages.base_url)

    def build_url(self, path: str) -> str:
        """Join the base URL and an API path.

        Raises:
            ObservationsAPIError: If the base URL is not configured.
        """
        if not self.base_url:
            raise ObservationsAPIError("OUTSIDE_OBSERVATIONS_API_BASE_URL is not configured")
        clean_base = self.base_url.rstrip("/")
        clean_path = path if path.startswith("/") else f"/{path}"
        return f"{clean_base}{clean_path}"

    async def forward(
        self,
        method: str,
        path: str,
        payload: Optional[dict] = None,
        *,
        label: str,
        failure_message: str,
        config_messages: MissingConfigMessages = COMPARE_CONFIG_MESSAGES,
    ) -> Any:
        """Send one request upstream and return its JSON body.

        Args:
            method: HTTP method.
            path: API path on the upstream service.
            payload: JSON body, if any.
            label: Prefix for synthesised upstream error messages.
            failure_message: Error reported when the service cannot be reached.
            config_messages: Errors reported when the client is not configured.

        Raises:
            ObservationsAPIError: On missing configuration, a non-2xx response
                (carrying the upstream status) or a transport failure (500).
        """
        self.check_configured(config_messages)
        url = self.build_url(path)
        headers = {"X-API-Key": self.api_key}

        try:
            response = await self._client.request(method, url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"{label} request to {path} failed: {e}")
            raise ObservationsAPIError(failure_message, status_code=500, details=str(e)) from e

        if response.is_error:
            error_text = response.text
            try:
                parsed = response.json()
            except ValueError:
                parsed = None
            message = None
            if isinstance(parsed, dict):
                message = parsed.get("error") or parsed.get("message")
            if not message:
                message = f"{label} failed: {response.status_code} {response.reason_phrase}"
            logger.warning(f"{label} returned {response.status_code}: {message}")
            raise ObservationsAPIError(
                message,
                status_code=response.status_code,
                details=parsed if parsed is not None else error_text,
            )

        try:
            return response.json()
        except ValueError:
            return {}

    async def compare_images(self, image1: Any, image2: Any) -> Any:
        return await self.forward(
            "POST",
            COMPARE_IMAGES_PATH,
            {"image1": image1, "image2": image2},
            label="Comparison API",
            failure_message="Failed to compare images.",
        )

    async def compare_items(self, item1: Any, item2: Any) -> Any:
        return await self.forward(
            "POST",
            COMPARE_ITEMS_PATH,
            {"item1": item1, "item2": item2},
            label="Comparison API",
            failure_message="Failed to compare items.",
        )

    async def query_vector_store(self, query: str, max_items: Any = 10) -> Any:
        return await self.forward(
            "POST",
            VECTOR_STORE_QUERY_PATH,
            {"query": query, "maxItems": max_items},
            label="Vector store query",
            failure_message="Unable to query the vector store.",
            config_messages=QUERY_CONFIG_MESSAGES,
        )

    async def add_image(self, item_id: Any, description: str) -> Any:
        return await self.forward(
            "POST",
            VECTOR_STORE_ADD_PATH,
            {"id": item_id, "description": description},
            label="Vector store",
            failure_message="Failed to connect to vector store service",
            config_messages=SERVER_CONFIG_MESSAGES,
        )

    async def update_item(self, item_id: Any, description: str) -> Any:
        return await self.forward(
            "POST",
            VECTOR_STORE_UPDATE_PATH,
            {"id": item_id, "description": description},
            label="Vector store",
            failure_message="Failed to connect to vector store service",
            config_messages=UPDATE_CONFIG_MESSAGES,
        )

    async def get_all_images(self) -> Any:
        return await self.forward(
            "GET",
            VECTOR_STORE_ALL_PATH,
            label="Vector store",
            failure_message="Failed to connect to vector store service",
            config_messages=SERVER_CONFIG_MESSAGES,
        )

    async def delete_image(self, item_id: str) -> Any:
        return await self.forward(
            "DELETE",
            f"{VECTOR_STORE_DELETE_PATH}/{quote(item_id, safe='')}",
            label="Vector store",
            failure_message="Failed to connect to vector store service",
            config_messages=SERVER_CONFIG_MESSAGES,
        )

    async def aclose(self) -> None:
        await self._client.aclose()
