"""httpx-based backend for the OpenAI Responses API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from asi_workflows.workflow.backend.base import BackendError, BackendRequest, BackendResponse
from asi_workflows.workflow.models import FailureKind

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
_ERROR_PREVIEW_CHARS = 500


class OpenAIResponsesBackend:
    """Posts single-turn structured-output requests to ``{base_url}/responses``.

    The client has no timeout of its own; attempts are bounded by the timeout guard.
    """

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str = DEFAULT_BASE_URL,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=None)

    async def create_response(self, request: BackendRequest) -> BackendResponse:
        try:
            response = await self._client.post(
                f"{self.base_url}/responses",
                headers={"Authorization": f"Bearer {self.api_key}"},
                json=build_payload(request),
            )
        except httpx.TimeoutException as error:
            logger.warning("Timeout calling model backend: %s", error)
            raise BackendError(
                f"Agent request timed out: {error}",
                kind=FailureKind.TIMEOUT,
            ) from error
        except httpx.TransportError as error:
            logger.warning("Transport error calling model backend: %s", error)
            raise BackendError(
                f"Agent request failed: {error}",
                kind=FailureKind.RETRYABLE_TRANSIENT,
            ) from error

        if not response.is_success:
            kind = classify_status(response.status_code)
            logger.warning(
                "Model backend returned HTTP %s (%s)",
                response.status_code,
                kind.value,
            )
            raise BackendError(
                f"Agent request failed: {response.status_code} "
                f"{response.text[:_ERROR_PREVIEW_CHARS]}",
                kind=kind,
            )

        try:
            payload = response.json()
        except ValueError as error:
            raise BackendError(
                "Agent response body is not JSON.",
                kind=FailureKind.NON_RETRYABLE,
            ) from error
        return BackendResponse(
            output_text=extract_output_text(payload),
            status_code=response.status_code,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def build_payload(request: BackendRequest) -> dict[str, Any]:
    """Request body: persona instructions plus exactly one user turn."""

    payload: dict[str, Any] = {
        "model": request.model,
        "instructions": request.instructions,
        "input": [{"role": "user", "content": request.input_text}],
        "metadata": {"agent_name": request.agent_name, "schema": request.schema_name},
    }
    if request.response_format:
        payload["text"] = {"format": request.response_format}
    return payload


def classify_status(status_code: int) -> FailureKind:
    if status_code == 429 or status_code >= 500:  # noqa: PLR2004
        return FailureKind.RETRYABLE_TRANSIENT
    return FailureKind.NON_RETRYABLE


def extract_output_text(payload: Any) -> str:
    """Return ``output_text`` or the joined ``output_text`` content parts."""

    if not isinstance(payload, dict):
        return ""
    output_text = payload.get("output_text")
    if isinstance(output_text, str) and output_text:
        return output_text
    output = payload.get("output")
    if not isinstance(output, list):
        return ""
    chunks: list[str] = []
    for item in output:
        if not isinstance(item, dict):
            continue
        for content in item.get("content") or []:
            if not isinstance(content, dict):
                continue
            text = content.get("text")
            if content.get("type") == "output_text" and isinstance(text, str) and text:
                chunks.append(text)
    return "\n".join(chunks)
