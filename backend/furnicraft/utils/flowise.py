"""Flowise prediction client.

Posts an image plus question to a Flowise chatflow/agentflow and returns
the decoded JSON body untouched, or the raw text when the body is not
JSON. Shape handling belongs to the normalizer, not here.
"""

from __future__ import annotations

import base64
from typing import Any

import httpx
import structlog

from furnicraft.config import Settings
from furnicraft.errors import AnalysisServiceError
from furnicraft.models.contracts import FlowisePredictionRequest, FlowiseUpload

logger = structlog.get_logger()

_ERROR_BODY_LIMIT = 2000


def to_data_url(data: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode()}"


def ensure_data_url(data: str, mime_type: str) -> str:
    """Prefix bare base64 with a data URL header; Flowise rejects bare payloads."""
    if data.startswith("data:"):
        return data
    return f"data:{mime_type};base64,{data}"


def build_prediction_request(
    question: str,
    image: bytes,
    mime_type: str,
    filename: str,
) -> FlowisePredictionRequest:
    return FlowisePredictionRequest(
        question=question,
        uploads=[FlowiseUpload(data=to_data_url(image, mime_type), type=mime_type, name=filename)],
        streaming=False,
    )


def prediction_url(cfg: Settings) -> str:
    return f"{cfg.flowise_api_url.rstrip('/')}/api/v1/prediction/{cfg.flowise_chatflow_id}"


class FlowiseClient:
    def __init__(self, cfg: Settings, http: httpx.AsyncClient) -> None:
        self._cfg = cfg
        self._http = http

    @property
    def url(self) -> str:
        return prediction_url(self._cfg)

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._cfg.flowise_api_key:
            headers["Authorization"] = f"Bearer {self._cfg.flowise_api_key}"
        return headers

    async def post(self, payload: dict[str, Any]) -> httpx.Response:
        """POST a raw payload; network failures become AnalysisServiceError."""
        try:
            return await self._http.post(
                self.url,
                json=payload,
                headers=self._headers(),
                timeout=self._cfg.flowise_timeout_seconds,
            )
        except httpx.TimeoutException as exc:
            logger.warning("flowise_timeout", url=self.url)
            raise AnalysisServiceError("Timeout calling Flowise API") from exc
        except httpx.RequestError as exc:
            logger.warning("flowise_unreachable", url=self.url, error_type=type(exc).__name__)
            raise AnalysisServiceError(
                f"Network error calling Flowise API: {type(exc).__name__}"
            ) from exc

    async def predict(self, request: FlowisePredictionRequest) -> Any:
        logger.info(
            "flowise_request",
            question=request.question[:100],
            upload_count=len(request.uploads),
        )
        response = await self.post(request.model_dump(exclude_none=True))

        if response.status_code >= 400:
            body = response.text[:_ERROR_BODY_LIMIT]
            logger.error("flowise_api_error", status=response.status_code, body=body[:200])
            raise AnalysisServiceError(
                f"Flowise API error: {response.status_code} - {body}",
                upstream_status=response.status_code,
                body=body,
            )

        try:
            data = response.json()
        except ValueError:
            logger.warning("flowise_non_json_body", length=len(response.text))
            return response.text
        logger.info("flowise_response", status=response.status_code)
        return data

    async def ping(self) -> bool:
        if not self._cfg.flowise_chatflow_id:
            return False
        try:
            response = await self._http.get(
                f"{self._cfg.flowise_api_url.rstrip('/')}/api/v1/ping", timeout=3.0
            )
        except httpx.HTTPError as exc:
            logger.debug("flowise_ping_failed", error=str(exc))
            return False
        return response.status_code < 500
