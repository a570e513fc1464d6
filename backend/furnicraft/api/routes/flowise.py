"""CORS-safe proxy to the Flowise prediction API.

Lets a browser call Flowise without exposing the API key or tripping CORS:
validates the body, normalizes uploads to data URLs, forwards with
streaming disabled and returns the upstream status and body verbatim.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from furnicraft.api.deps import get_flowise
from furnicraft.errors import AnalysisServiceError
from furnicraft.utils.flowise import FlowiseClient, ensure_data_url

logger = structlog.get_logger()

router = APIRouter(tags=["flowise"])

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}


def _error(status: int, message: str, details: str) -> JSONResponse:
    return JSONResponse(
        status_code=status,
        content={"error": message, "details": details},
        headers=CORS_HEADERS,
    )


def _validate(body: Any) -> dict[str, Any] | str:
    """Return the forwardable payload, or an error message."""
    if not isinstance(body, dict):
        return "Request body must be a JSON object"
    question = body.get("question")
    if not isinstance(question, str) or not question.strip():
        return "Question is required"
    uploads = body.get("uploads")
    if not isinstance(uploads, list) or not uploads:
        return "At least one upload is required"

    forwarded = []
    for upload in uploads:
        if not isinstance(upload, dict) or not all(
            isinstance(upload.get(key), str) and upload.get(key) for key in ("data", "type", "name")
        ):
            return "Each upload must have data, type, and name properties"
        forwarded.append(
            {
                "data": ensure_data_url(upload["data"], upload["type"]),
                "type": upload["type"],
                "name": upload["name"],
            }
        )

    payload: dict[str, Any] = {"question": question, "uploads": forwarded, "streaming": False}
    if isinstance(body.get("chatId"), str):
        payload["chatId"] = body["chatId"]
    return payload


@router.options("/functions/flowise-analysis")
async def flowise_preflight() -> Response:
    return Response(status_code=200, headers=CORS_HEADERS)


@router.post("/functions/flowise-analysis")
async def flowise_analysis(
    request: Request,
    flowise: FlowiseClient = Depends(get_flowise),
) -> Response:
    try:
        body = await request.json()
    except ValueError:
        return _error(400, "Request body must be valid JSON", "Failed to analyze with Flowise API")

    payload = _validate(body)
    if isinstance(payload, str):
        return _error(400, payload, "Failed to analyze with Flowise API")

    logger.info(
        "flowise_proxy_request",
        question=payload["question"][:100],
        upload_count=len(payload["uploads"]),
    )
    try:
        upstream = await flowise.post(payload)
    except AnalysisServiceError as exc:
        return _error(502, exc.message, "Failed to reach Flowise API")

    if upstream.status_code >= 400:
        logger.error("flowise_proxy_upstream_error", status=upstream.status_code)
    media_type = upstream.headers.get("content-type", "application/json")
    return Response(
        content=upstream.content,
        status_code=upstream.status_code,
        media_type=media_type,
        headers=CORS_HEADERS,
    )
