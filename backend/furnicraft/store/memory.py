"""In-memory DesignStore — used when USE_DATABASE is off and as the test fake."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from furnicraft.errors import (
    DatabaseError,
    DesignNotFoundError,
    DesignStateError,
    MaterialNotFoundError,
)
from furnicraft.models.contracts import (
    AnalysisResult,
    Design,
    DesignStatus,
    Material,
    NormalizedAnalysis,
    SupplierPrice,
    priority_rank,
)


class InMemoryDesignStore:
    def __init__(self) -> None:
        self.designs: dict[str, Design] = {}
        self.analyses: dict[str, AnalysisResult] = {}  # keyed by design_id
        self.materials: dict[str, list[Material]] = {}  # keyed by analysis_id
        self.supplier_prices: dict[str, list[SupplierPrice]] = {}  # keyed by material_id

    async def create_design(
        self,
        *,
        title: str,
        image_url: str,
        description: str | None = None,
        original_filename: str | None = None,
    ) -> Design:
        now = datetime.now(UTC)
        design = Design(
            id=str(uuid.uuid4()),
            title=title,
            description=description,
            image_url=image_url,
            original_filename=original_filename,
            status="pending",
            created_at=now,
            updated_at=now,
        )
        self.designs[design.id] = design
        return design.model_copy()

    async def get_design(self, design_id: str) -> Design | None:
        design = self.designs.get(design_id)
        return design.model_copy() if design is not None else None

    async def list_designs(self, limit: int = 100) -> list[Design]:
        # dict order is creation order
        ordered = list(reversed(self.designs.values()))
        return [d.model_copy() for d in ordered[:limit]]

    async def set_status(self, design_id: str, status: DesignStatus) -> Design:
        design = self.designs.get(design_id)
        if design is None:
            raise DesignNotFoundError(design_id)
        updated = design.model_copy(update={"status": status, "updated_at": datetime.now(UTC)})
        self.designs[design_id] = updated
        return updated.model_copy()

    async def start_analysis(self, design_id: str) -> Design:
        design = self.designs.get(design_id)
        if design is None:
            raise DesignNotFoundError(design_id)
        if design.status != "pending":
            raise DesignStateError(design_id, design.status)
        return await self.set_status(design_id, "analyzing")

    async def save_analysis(
        self, design_id: str, analysis: NormalizedAnalysis
    ) -> tuple[AnalysisResult, list[Material]]:
        if design_id not in self.designs:
            raise DesignNotFoundError(design_id)
        if design_id in self.analyses:
            # Mirrors the unique constraint on analysis_results.design_id
            raise DatabaseError(f"Analysis for design {design_id} already exists")

        result = AnalysisResult(
            id=str(uuid.uuid4()),
            design_id=design_id,
            ai_description=analysis.description,
            estimated_cost_min=analysis.estimated_cost_min,
            estimated_cost_max=analysis.estimated_cost_max,
            difficulty_level=analysis.difficulty_level,
            estimated_time_hours=analysis.estimated_time_hours,
            style_category=analysis.style_category,
            raw_ai_response=analysis.raw_response,
            created_at=datetime.now(UTC),
        )
        materials = [
            Material(id=str(uuid.uuid4()), analysis_id=result.id, **draft.model_dump())
            for draft in analysis.materials
        ]
        self.analyses[design_id] = result
        self.materials[result.id] = materials
        return result.model_copy(), [m.model_copy() for m in materials]

    async def get_analysis(self, design_id: str) -> AnalysisResult | None:
        result = self.analyses.get(design_id)
        return result.model_copy() if result is not None else None

    async def list_materials(self, analysis_id: str) -> list[Material]:
        # sorted() is stable, so insertion order survives within a priority
        rows = sorted(self.materials.get(analysis_id, []), key=lambda m: priority_rank(m.priority))
        return [m.model_copy() for m in rows]

    async def get_material(self, material_id: str) -> Material | None:
        for materials in self.materials.values():
            for material in materials:
                if material.id == material_id:
                    return material.model_copy()
        return None

    async def add_supplier_price(self, price: SupplierPrice) -> SupplierPrice:
        # Mirrors the foreign key on supplier_pricing.material_id
        if await self.get_material(price.material_id) is None:
            raise MaterialNotFoundError(price.material_id)
        self.supplier_prices.setdefault(price.material_id, []).append(price)
        return price.model_copy()

    async def list_supplier_prices(self, material_id: str) -> list[SupplierPrice]:
        rows = sorted(self.supplier_prices.get(material_id, []), key=lambda p: p.price)
        return [p.model_copy() for p in rows]

    async def ping(self) -> bool:
        return True
