"""Design endpoints — upload, list, status, results and supplier prices.

Uploading returns as soon as the design row exists; analysis runs as a
background task and clients either poll GET .../analysis (202 until ready)
or block on GET .../analysis/wait, which runs the bounded poller and stops
when the client disconnects.
"""

from __future__ import annotations

import asyncio
import contextlib
import uuid

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from furnicraft.analysis.orchestrator import UploadOrchestrator
from furnicraft.analysis.poller import AnalysisPoller
from furnicraft.api.deps import get_orchestrator, get_poller, get_services, get_store
from furnicraft.errors import AnalysisFailedError, DesignNotFoundError, ValidationError
from furnicraft.models.contracts import (
    AnalysisPayload,
    AnalysisPendingResponse,
    Design,
    DesignListResponse,
    SupplierComparisonResponse,
    SupplierPrice,
    SupplierPriceView,
)
from furnicraft.services import Services
from furnicraft.store.base import DesignStore

logger = structlog.get_logger()

router = APIRouter(tags=["designs"])

_DISCONNECT_CHECK_INTERVAL = 0.5  # seconds


class SupplierPriceRequest(BaseModel):
    supplier_name: str = Field(min_length=1)
    price: float = Field(ge=0)
    location: str | None = None
    delivery_time_days: int | None = Field(default=None, ge=0)
    quality_rating: float | None = Field(default=None, ge=0, le=5)
    is_available: bool = True


async def _require_design(store: DesignStore, design_id: str) -> Design:
    design = await store.get_design(design_id)
    if design is None:
        raise DesignNotFoundError(design_id)
    return design


@router.post("/designs", status_code=201, response_model=Design)
async def upload_design(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    title: str = Form(""),
    description: str | None = Form(None),
    orchestrator: UploadOrchestrator = Depends(get_orchestrator),
    services: Services = Depends(get_services),
) -> Design:
    """Store the image, create a pending design and schedule its analysis."""
    data = await file.read(services.settings.max_upload_bytes + 1)
    design, image = await orchestrator.upload(
        data,
        filename=file.filename,
        content_type=file.content_type,
        title=title,
        description=description,
    )
    background_tasks.add_task(orchestrator.analyze_in_background, design, image)
    return design


@router.get("/designs", response_model=DesignListResponse)
async def list_designs(store: DesignStore = Depends(get_store)) -> DesignListResponse:
    return DesignListResponse(designs=await store.list_designs())


@router.get("/designs/{design_id}", response_model=Design)
async def get_design(design_id: str, store: DesignStore = Depends(get_store)) -> Design:
    return await _require_design(store, design_id)


@router.get(
    "/designs/{design_id}/analysis",
    response_model=AnalysisPayload,
    responses={202: {"model": AnalysisPendingResponse}},
)
async def get_analysis(
    design_id: str,
    store: DesignStore = Depends(get_store),
    poller: AnalysisPoller = Depends(get_poller),
) -> AnalysisPayload | JSONResponse:
    """Single non-blocking check of a design's analysis."""
    design = await _require_design(store, design_id)
    payload = await poller.fetch_once(design_id)
    if payload is not None:
        return payload
    if design.status == "failed":
        raise AnalysisFailedError(design_id)

    pending = AnalysisPendingResponse(
        design_id=design_id,
        status=design.status,
        retry_after_seconds=poller.interval,
    )
    return JSONResponse(
        status_code=202,
        content=pending.model_dump(),
        headers={"Retry-After": str(max(1, round(poller.interval)))},
    )


async def _watch_disconnect(request: Request, cancel: asyncio.Event) -> None:
    while not cancel.is_set():
        if await request.is_disconnected():
            logger.info("poll_client_disconnected", path=request.url.path)
            cancel.set()
            return
        await asyncio.sleep(_DISCONNECT_CHECK_INTERVAL)


@router.get("/designs/{design_id}/analysis/wait", response_model=AnalysisPayload)
async def wait_for_analysis(
    design_id: str,
    request: Request,
    store: DesignStore = Depends(get_store),
    poller: AnalysisPoller = Depends(get_poller),
) -> AnalysisPayload:
    """Block until the analysis is ready, failed, or the poll budget runs out."""
    await _require_design(store, design_id)
    cancel = asyncio.Event()
    watcher = asyncio.create_task(_watch_disconnect(request, cancel))
    try:
        return await poller.wait_for_result(design_id, cancel=cancel)
    finally:
        cancel.set()
        watcher.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await watcher


# --- Supplier price comparison ---


def _mark_best_price(prices: list[SupplierPrice]) -> list[SupplierPriceView]:
    available = [p.price for p in prices if p.is_available]
    best = min(available) if available else None
    return [
        SupplierPriceView(**p.model_dump(), is_best_price=p.is_available and p.price == best)
        for p in prices
    ]


@router.get("/materials/{material_id}/suppliers", response_model=SupplierComparisonResponse)
async def list_suppliers(
    material_id: str, store: DesignStore = Depends(get_store)
) -> SupplierComparisonResponse:
    prices = await store.list_supplier_prices(material_id)
    return SupplierComparisonResponse(material_id=material_id, suppliers=_mark_best_price(prices))


@router.post(
    "/materials/{material_id}/suppliers", status_code=201, response_model=SupplierPrice
)
async def add_supplier(
    material_id: str,
    body: SupplierPriceRequest,
    store: DesignStore = Depends(get_store),
) -> SupplierPrice:
    try:
        uuid.UUID(material_id)
    except ValueError as exc:
        raise ValidationError(f"Invalid material id {material_id!r}") from exc
    price = SupplierPrice(id=str(uuid.uuid4()), material_id=material_id, **body.model_dump())
    return await store.add_supplier_price(price)
