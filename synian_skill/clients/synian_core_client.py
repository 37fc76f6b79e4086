"""
Synian Core HTTP client.

Every call is a single round trip with a fixed context envelope. The client
never retries: the authentication path decides for itself what a failure
means, and a conversational turn is reported once so the backend never sees
a duplicated prompt.
"""

import logging
import time
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from synian_skill.config import settings
from synian_skill.errors import BackendUnavailable
from synian_skill.models.backend_models import AuthCredentials, BackendResult, RequestContext
from synian_skill.models.platform_models import InboundEvent
from synian_skill.observability import record_backend_metrics, trace_function

logger = logging.getLogger(__name__)

ORIGIN = "alexa"
AUTH_PROMPT = "__auth_synian_mode__"
END_SESSION_PROMPT = "__end_synian_session__"
CONVERSATION_MODE = "synian"


def build_request_context(event: InboundEvent, session_id: Optional[str] = None) -> RequestContext:
    """Fresh context envelope for one backend call."""
    return RequestContext(
        company_id=settings.company_id,
        user_id=settings.user_id,
        device_id=event.device_id,
        alexa_user_id=event.platform_user_id,
        application_id=event.application_id,
        session_id=session_id
    )


def summarize_error(error: Exception) -> str:
    """Redacted one-line description of a transport failure (no bodies)."""
    if isinstance(error, httpx.HTTPStatusError):
        return f"HTTP {error.response.status_code}"
    if isinstance(error, httpx.TimeoutException):
        return "timeout"
    return type(error).__name__


class SynianCoreClient:
    """
    Async client for the Synian Core query API.

    Holds no conversation state; the pooled ``httpx.AsyncClient`` is created
    lazily and closed with ``aclose()``.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        query_path: Optional[str] = None,
        status_path: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize Synian Core client.

        Args:
            base_url: Synian Core base URL (default: settings.synian_base_url)
            api_key: Optional bearer token (default: settings.synian_api_key)
            timeout: Per-call timeout in seconds (default: 8.0 from settings)
            query_path: Path of the query endpoint
            status_path: Path of the status endpoint
            transport: Optional httpx transport, used by tests
        """
        self.base_url = (base_url or settings.synian_base_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.synian_api_key
        self.timeout = timeout or settings.request_timeout_seconds
        self.query_path = query_path or settings.synian_query_path
        self.status_path = status_path or settings.synian_status_path
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the pooled HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=self.headers,
                transport=self._transport
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @staticmethod
    def build_payload(
        context: RequestContext,
        prompt: Optional[str] = None,
        command: Optional[str] = None,
        auth: Optional[AuthCredentials] = None
    ) -> Dict[str, Any]:
        """Assemble the JSON body for a query call."""
        if (prompt is None) == (command is None):
            raise ValueError("Exactly one of prompt or command is required")

        payload: Dict[str, Any] = {}
        if prompt is not None:
            payload["prompt"] = prompt
        else:
            payload["command"] = command
        payload["origin"] = ORIGIN
        payload["context"] = context.to_payload()
        if auth is not None:
            payload["auth"] = auth.model_dump()
        return payload

    @trace_function("synian_core.call_backend")
    async def call_backend(
        self,
        prompt: Optional[str] = None,
        *,
        context: RequestContext,
        auth: Optional[AuthCredentials] = None,
        command: Optional[str] = None,
        operation: str = "query"
    ) -> BackendResult:
        """
        Perform one POST to the Synian Core query endpoint.

        Args:
            prompt: Free text or sentinel prompt
            context: Request context envelope
            auth: Credentials for the authentication exchange
            command: Command text, sent instead of a prompt
            operation: Operation name used in logs and metrics

        Returns:
            BackendResult parsed from the response body

        Raises:
            BackendUnavailable: On timeout, transport error, non-2xx status
                or an unparseable body
        """
        payload = self.build_payload(context, prompt=prompt, command=command, auth=auth)
        start_time = time.time()

        try:
            response = await self.client.post(self.query_path, json=payload)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            summary = summarize_error(e)
            record_backend_metrics(operation, False, time.time() - start_time)
            logger.error(f"Synian Core {operation} failed: {summary}")
            raise BackendUnavailable(operation, summary) from e

        if not isinstance(data, dict):
            record_backend_metrics(operation, False, time.time() - start_time)
            logger.error(f"Synian Core {operation} returned a non-object body")
            raise BackendUnavailable(operation, "unexpected response shape")

        try:
            result = BackendResult.model_validate(data)
        except ValidationError as e:
            record_backend_metrics(operation, False, time.time() - start_time)
            logger.error(f"Synian Core {operation} response failed validation: {e.error_count()} errors")
            raise BackendUnavailable(operation, "invalid response fields") from e

        record_backend_metrics(operation, True, time.time() - start_time)
        logger.debug(f"Synian Core {operation} completed in {time.time() - start_time:.3f}s")
        return result

    async def authenticate(self, code: str, context: RequestContext) -> BackendResult:
        """Exchange a spoken code for a Synian session."""
        return await self.call_backend(
            AUTH_PROMPT,
            context=context,
            auth=AuthCredentials(method="totp", value=code),
            operation="authenticate"
        )

    async def converse(self, utterance: str, context: RequestContext) -> BackendResult:
        """Relay one conversational turn."""
        return await self.call_backend(
            utterance,
            context=context.model_copy(update={"mode": CONVERSATION_MODE}),
            operation="converse"
        )

    async def send_command(self, command: str, context: RequestContext) -> BackendResult:
        """Send an action for Synian to execute."""
        return await self.call_backend(
            context=context.model_copy(update={"mode": CONVERSATION_MODE}),
            command=command,
            operation="command"
        )

    async def end_session(self, context: RequestContext) -> BackendResult:
        """Tell Synian Core the user left Synian mode."""
        return await self.call_backend(END_SESSION_PROMPT, context=context, operation="end_session")

    @trace_function("synian_core.get_status")
    async def get_status(self) -> Dict[str, Any]:
        """
        Fetch Synian Core's status document.

        Raises:
            BackendUnavailable: On any transport or HTTP failure
        """
        start_time = time.time()
        try:
            response = await self.client.get(self.status_path)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            summary = summarize_error(e)
            record_backend_metrics("status", False, time.time() - start_time)
            logger.error(f"Synian Core status failed: {summary}")
            raise BackendUnavailable("status", summary) from e

        record_backend_metrics("status", True, time.time() - start_time)
        return data if isinstance(data, dict) else {}


# Global client instance
_core_client: Optional[SynianCoreClient] = None


def get_core_client() -> SynianCoreClient:
    """
    Get the global Synian Core client instance.

    Returns:
        SynianCoreClient: The global client instance
    """
    global _core_client
    if _core_client is None:
        _core_client = SynianCoreClient()
    return _core_client


async def close_core_client() -> None:
    """Close the global client's connection pool."""
    global _core_client
    if _core_client is not None:
        await _core_client.aclose()
        _core_client = None
