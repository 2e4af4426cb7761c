"""HTTP content store."""

import httpx
import structlog

from src.infrastructure.content.exceptions import ContentFetchError
from src.infrastructure.observability import get_tracer

logger = structlog.get_logger()
tracer = get_tracer(__name__)


class HttpContentStore:
    """Fetches the reference document from an HTTP(S) origin.

    Suitable for object stores exposed over HTTPS (pre-signed or public
    bucket URLs) as well as plain web servers.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            timeout_seconds: Request timeout in seconds.
            client: Optional pre-built client (tests inject a mock transport).
        """
        self._timeout = timeout_seconds
        self._client = client

    async def fetch(self, identifier: str) -> str:
        """GET ``identifier`` and return the body text.

        Raises:
            ContentFetchError: On transport errors or a non-2xx status.
        """
        with tracer.start_as_current_span("content.fetch") as span:
            span.set_attribute("content.url", identifier)
            try:
                if self._client is not None:
                    response = await self._client.get(identifier)
                else:
                    async with httpx.AsyncClient(timeout=self._timeout) as client:
                        response = await client.get(identifier)
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                span.record_exception(e)
                raise ContentFetchError(
                    f"Content store returned HTTP {e.response.status_code}",
                    source=identifier,
                ) from e
            except httpx.HTTPError as e:
                span.record_exception(e)
                raise ContentFetchError(
                    f"Content store request failed: {type(e).__name__}",
                    source=identifier,
                ) from e

            content = response.text
            span.set_attribute("content.length", len(content))

        logger.debug(
            "reference_http_loaded",
            url=identifier,
            status_code=response.status_code,
            content_length=len(content),
        )
        return content
