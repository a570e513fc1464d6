"""SQLAlchemy ORM models for FurniCraft.

Four tables: designs → analysis_results (one per design) → materials →
supplier_pricing. Analysis rows and their materials are written once and
never updated; only `designs.status` changes over a design's lifetime.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class DesignRow(Base):
    __tablename__ = "designs"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'analyzing', 'completed', 'failed')",
            name="ck_designs_status",
        ),
        Index("idx_designs_created_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_url: Mapped[str] = mapped_column(Text, nullable=False)
    original_filename: Mapped[str | None] = mapped_column(String(500), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    analysis: Mapped["AnalysisResultRow | None"] = relationship(
        back_populates="design", cascade="all, delete"
    )


class AnalysisResultRow(Base):
    __tablename__ = "analysis_results"
    __table_args__ = (
        CheckConstraint(
            "difficulty_level IN ('beginner', 'intermediate', 'advanced')",
            name="ck_analysis_results_difficulty",
        ),
        CheckConstraint(
            "estimated_cost_min <= estimated_cost_max",
            name="ck_analysis_results_cost_range",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    design_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("designs.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    ai_description: Mapped[str] = mapped_column(Text, nullable=False)
    estimated_cost_min: Mapped[float] = mapped_column(Numeric(12, 2), nullable=False)
    estimated_cost_max: Mapped[float] = mapped_column(Numeric(12, 2), nullable=False)
    difficulty_level: Mapped[str] = mapped_column(String(20), nullable=False)
    estimated_time_hours: Mapped[float] = mapped_column(Float, nullable=False)
    style_category: Mapped[str] = mapped_column(String(100), nullable=False)
    raw_ai_response: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    design: Mapped["DesignRow"] = relationship(back_populates="analysis")
    materials: Mapped[list["MaterialRow"]] = relationship(
        back_populates="analysis", cascade="all, delete"
    )


class MaterialRow(Base):
    __tablename__ = "materials"
    __table_args__ = (
        Index("idx_materials_analysis", "analysis_id"),
        CheckConstraint(
            "priority IN ('required', 'optional', 'alternative')",
            name="ck_materials_priority",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    analysis_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("analysis_results.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    quantity: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    unit: Mapped[str] = mapped_column(String(50), nullable=False)
    estimated_cost: Mapped[float] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default="required")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    analysis: Mapped["AnalysisResultRow"] = relationship(back_populates="materials")
    supplier_prices: Mapped[list["SupplierPricingRow"]] = relationship(
        back_populates="material", cascade="all, delete"
    )


class SupplierPricingRow(Base):
    __tablename__ = "supplier_pricing"
    __table_args__ = (Index("idx_supplier_pricing_material", "material_id", "price"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    material_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("materials.id", ondelete="CASCADE"), nullable=False
    )
    supplier_name: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[float] = mapped_column(Numeric(12, 2), nullable=False)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    delivery_time_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    quality_rating: Mapped[float | None] = mapped_column(Float, nullable=True)
    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    contact_info: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    material: Mapped["MaterialRow"] = relationship(back_populates="supplier_prices")
