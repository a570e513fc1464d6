"""DesignStore protocol — the relational collaborator seen by the core.

Implementations raise `DatabaseError` for backend failures and
`DesignNotFoundError` or `MaterialNotFoundError` when an operation
targets an unknown design or material.
Lookups that may legitimately come back empty return None instead.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from furnicraft.models.contracts import (
    AnalysisResult,
    Design,
    DesignStatus,
    Material,
    NormalizedAnalysis,
    SupplierPrice,
)


@runtime_checkable
class DesignStore(Protocol):
    async def create_design(
        self,
        *,
        title: str,
        image_url: str,
        description: str | None = None,
        original_filename: str | None = None,
    ) -> Design: ...

    async def get_design(self, design_id: str) -> Design | None: ...

    async def list_designs(self, limit: int = 100) -> list[Design]: ...

    async def set_status(self, design_id: str, status: DesignStatus) -> Design: ...

    async def start_analysis(self, design_id: str) -> Design:
        """Move a design from pending to analyzing in one conditional step.

        Raises DesignStateError when the stored status is not pending.
        """
        ...

    async def save_analysis(
        self, design_id: str, analysis: NormalizedAnalysis
    ) -> tuple[AnalysisResult, list[Material]]: ...

    async def get_analysis(self, design_id: str) -> AnalysisResult | None: ...

    async def list_materials(self, analysis_id: str) -> list[Material]: ...

    async def get_material(self, material_id: str) -> Material | None: ...

    async def add_supplier_price(self, price: SupplierPrice) -> SupplierPrice: ...

    async def list_supplier_prices(self, material_id: str) -> list[SupplierPrice]: ...

    async def ping(self) -> bool: ...
