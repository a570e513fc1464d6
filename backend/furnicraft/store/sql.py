"""SQLAlchemy-backed DesignStore over Supabase Postgres (asyncpg driver)."""

from __future__ import annotations

import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from sqlalchemy import case, select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from furnicraft.errors import (
    DatabaseError,
    DesignNotFoundError,
    DesignStateError,
    MaterialNotFoundError,
)
from furnicraft.models.contracts import (
    MATERIAL_PRIORITIES,
    AnalysisResult,
    Design,
    DesignStatus,
    Material,
    NormalizedAnalysis,
    SupplierPrice,
)
from furnicraft.models.db import AnalysisResultRow, DesignRow, MaterialRow, SupplierPricingRow

logger = structlog.get_logger()

_PRIORITY_ORDER = case(
    {name: rank for rank, name in enumerate(MATERIAL_PRIORITIES)},
    value=MaterialRow.priority,
    else_=len(MATERIAL_PRIORITIES),
)


def _parse_id(value: str) -> uuid.UUID | None:
    try:
        return uuid.UUID(value)
    except (TypeError, ValueError):
        return None


def _design(row: DesignRow) -> Design:
    return Design(
        id=str(row.id),
        title=row.title,
        description=row.description,
        image_url=row.image_url,
        original_filename=row.original_filename,
        status=row.status,  # type: ignore[arg-type]
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _analysis(row: AnalysisResultRow) -> AnalysisResult:
    return AnalysisResult(
        id=str(row.id),
        design_id=str(row.design_id),
        ai_description=row.ai_description,
        estimated_cost_min=float(row.estimated_cost_min),
        estimated_cost_max=float(row.estimated_cost_max),
        difficulty_level=row.difficulty_level,  # type: ignore[arg-type]
        estimated_time_hours=row.estimated_time_hours,
        style_category=row.style_category,
        raw_ai_response=row.raw_ai_response,
        created_at=row.created_at,
    )


def _material(row: MaterialRow) -> Material:
    return Material(
        id=str(row.id),
        analysis_id=str(row.analysis_id),
        name=row.name,
        category=row.category,
        quantity=row.quantity or 0,
        unit=row.unit,
        estimated_cost=float(row.estimated_cost or 0),
        priority=row.priority,  # type: ignore[arg-type]
        notes=row.notes,
    )


def _supplier_price(row: SupplierPricingRow) -> SupplierPrice:
    return SupplierPrice(
        id=str(row.id),
        material_id=str(row.material_id),
        supplier_name=row.supplier_name,
        price=float(row.price),
        location=row.location,
        delivery_time_days=row.delivery_time_days,
        quality_rating=row.quality_rating,
        is_available=row.is_available,
    )


class SqlDesignStore:
    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._sessions = async_sessionmaker(engine, expire_on_commit=False)

    @classmethod
    def from_url(cls, database_url: str) -> SqlDesignStore:
        return cls(create_async_engine(database_url, pool_pre_ping=True))

    async def dispose(self) -> None:
        await self._engine.dispose()

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        """Session scope that commits on success and maps driver errors to DatabaseError."""
        try:
            async with self._sessions() as session, session.begin():
                yield session
        except SQLAlchemyError as exc:
            logger.error("db_operation_failed", operation=operation, error_type=type(exc).__name__)
            raise DatabaseError(f"{operation} failed: {type(exc).__name__}") from exc

    async def create_design(
        self,
        *,
        title: str,
        image_url: str,
        description: str | None = None,
        original_filename: str | None = None,
    ) -> Design:
        async with self._session("create_design") as session:
            row = DesignRow(
                title=title,
                description=description,
                image_url=image_url,
                original_filename=original_filename,
                status="pending",
            )
            session.add(row)
            await session.flush()
            await session.refresh(row)
            return _design(row)

    async def get_design(self, design_id: str) -> Design | None:
        key = _parse_id(design_id)
        if key is None:
            return None
        async with self._session("get_design") as session:
            row = await session.get(DesignRow, key)
            return _design(row) if row is not None else None

    async def list_designs(self, limit: int = 100) -> list[Design]:
        async with self._session("list_designs") as session:
            result = await session.scalars(
                select(DesignRow).order_by(DesignRow.created_at.desc()).limit(limit)
            )
            return [_design(row) for row in result]

    async def set_status(self, design_id: str, status: DesignStatus) -> Design:
        key = _parse_id(design_id)
        if key is None:
            raise DesignNotFoundError(design_id)
        async with self._session("set_status") as session:
            row = await session.get(DesignRow, key)
            if row is None:
                raise DesignNotFoundError(design_id)
            row.status = status
            await session.flush()
            await session.refresh(row)
            return _design(row)

    async def start_analysis(self, design_id: str) -> Design:
        key = _parse_id(design_id)
        if key is None:
            raise DesignNotFoundError(design_id)
        async with self._session("start_analysis") as session:
            # Conditional update: of two concurrent triggers only one sees a row
            row = await session.scalar(
                update(DesignRow)
                .where(DesignRow.id == key, DesignRow.status == "pending")
                .values(status="analyzing")
                .returning(DesignRow)
                .execution_options(synchronize_session=False)
            )
            if row is None:
                current = await session.get(DesignRow, key)
                if current is None:
                    raise DesignNotFoundError(design_id)
                raise DesignStateError(design_id, current.status)
            return _design(row)

    async def save_analysis(
        self, design_id: str, analysis: NormalizedAnalysis
    ) -> tuple[AnalysisResult, list[Material]]:
        key = _parse_id(design_id)
        if key is None:
            raise DesignNotFoundError(design_id)
        try:
            async with self._session("save_analysis") as session:
                result_row = AnalysisResultRow(
                    design_id=key,
                    ai_description=analysis.description,
                    estimated_cost_min=analysis.estimated_cost_min,
                    estimated_cost_max=analysis.estimated_cost_max,
                    difficulty_level=analysis.difficulty_level,
                    estimated_time_hours=analysis.estimated_time_hours,
                    style_category=analysis.style_category,
                    raw_ai_response=analysis.raw_response,
                )
                session.add(result_row)
                await session.flush()

                material_rows = [
                    MaterialRow(analysis_id=result_row.id, **draft.model_dump())
                    for draft in analysis.materials
                ]
                session.add_all(material_rows)
                await session.flush()
                for row in [result_row, *material_rows]:
                    await session.refresh(row)
                return _analysis(result_row), [_material(row) for row in material_rows]
        except DatabaseError as exc:
            missing = isinstance(exc.__cause__, IntegrityError) and (
                await self.get_design(design_id) is None
            )
            if missing:
                raise DesignNotFoundError(design_id) from exc
            raise

    async def get_analysis(self, design_id: str) -> AnalysisResult | None:
        key = _parse_id(design_id)
        if key is None:
            return None
        async with self._session("get_analysis") as session:
            row = await session.scalar(
                select(AnalysisResultRow).where(AnalysisResultRow.design_id == key)
            )
            return _analysis(row) if row is not None else None

    async def list_materials(self, analysis_id: str) -> list[Material]:
        key = _parse_id(analysis_id)
        if key is None:
            return []
        async with self._session("list_materials") as session:
            result = await session.scalars(
                select(MaterialRow)
                .where(MaterialRow.analysis_id == key)
                .order_by(_PRIORITY_ORDER, MaterialRow.created_at)
            )
            return [_material(row) for row in result]

    async def get_material(self, material_id: str) -> Material | None:
        key = _parse_id(material_id)
        if key is None:
            return None
        async with self._session("get_material") as session:
            row = await session.get(MaterialRow, key)
            return _material(row) if row is not None else None

    async def add_supplier_price(self, price: SupplierPrice) -> SupplierPrice:
        material_key = _parse_id(price.material_id)
        if material_key is None:
            raise MaterialNotFoundError(price.material_id)
        async with self._session("add_supplier_price") as session:
            if await session.get(MaterialRow, material_key) is None:
                raise MaterialNotFoundError(price.material_id)
            row = SupplierPricingRow(
                id=_parse_id(price.id) or uuid.uuid4(),
                material_id=material_key,
                supplier_name=price.supplier_name,
                price=price.price,
                location=price.location,
                delivery_time_days=price.delivery_time_days,
                quality_rating=price.quality_rating,
                is_available=price.is_available,
            )
            session.add(row)
            await session.flush()
            await session.refresh(row)
            return _supplier_price(row)

    async def list_supplier_prices(self, material_id: str) -> list[SupplierPrice]:
        key = _parse_id(material_id)
        if key is None:
            return []
        async with self._session("list_supplier_prices") as session:
            result = await session.scalars(
                select(SupplierPricingRow)
                .where(SupplierPricingRow.material_id == key)
                .order_by(SupplierPricingRow.price)
            )
            return [_supplier_price(row) for row in result]

    async def ping(self) -> bool:
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            logger.debug("db_ping_failed", error=str(exc))
            return False
        return True
