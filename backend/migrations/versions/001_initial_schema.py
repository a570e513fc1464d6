"""Initial schema — 4 tables matching db.py models.

Revision ID: 001
Revises: (none)
Create Date: 2026-10-19
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    # --- designs ---
    op.create_table(
        "designs",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("image_url", sa.Text(), nullable=False),
        sa.Column("original_filename", sa.String(500), nullable=True),
        sa.Column("status", sa.String(20), server_default="pending", nullable=False),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('pending', 'analyzing', 'completed', 'failed')",
            name="ck_designs_status",
        ),
    )
    op.create_index("idx_designs_created_at", "designs", ["created_at"])

    # --- analysis_results ---
    op.create_table(
        "analysis_results",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "design_id",
            UUID(as_uuid=True),
            sa.ForeignKey("designs.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("ai_description", sa.Text(), nullable=False),
        sa.Column("estimated_cost_min", sa.Numeric(12, 2), nullable=False),
        sa.Column("estimated_cost_max", sa.Numeric(12, 2), nullable=False),
        sa.Column("difficulty_level", sa.String(20), nullable=False),
        sa.Column("estimated_time_hours", sa.Float(), nullable=False),
        sa.Column("style_category", sa.String(100), nullable=False),
        sa.Column("raw_ai_response", JSONB(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.CheckConstraint(
            "difficulty_level IN ('beginner', 'intermediate', 'advanced')",
            name="ck_analysis_results_difficulty",
        ),
        sa.CheckConstraint(
            "estimated_cost_min <= estimated_cost_max",
            name="ck_analysis_results_cost_range",
        ),
    )

    # --- materials ---
    op.create_table(
        "materials",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "analysis_id",
            UUID(as_uuid=True),
            sa.ForeignKey("analysis_results.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column("quantity", sa.Float(), server_default="0", nullable=False),
        sa.Column("unit", sa.String(50), nullable=False),
        sa.Column("estimated_cost", sa.Numeric(12, 2), server_default="0", nullable=False),
        sa.Column("priority", sa.String(20), server_default="required", nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.CheckConstraint(
            "priority IN ('required', 'optional', 'alternative')",
            name="ck_materials_priority",
        ),
    )
    op.create_index("idx_materials_analysis", "materials", ["analysis_id"])

    # --- supplier_pricing ---
    op.create_table(
        "supplier_pricing",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "material_id",
            UUID(as_uuid=True),
            sa.ForeignKey("materials.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("supplier_name", sa.String(255), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("delivery_time_days", sa.Integer(), nullable=True),
        sa.Column("quality_rating", sa.Float(), nullable=True),
        sa.Column("is_available", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("contact_info", JSONB(), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "idx_supplier_pricing_material", "supplier_pricing", ["material_id", "price"]
    )


def downgrade() -> None:
    op.drop_table("supplier_pricing")
    op.drop_table("materials")
    op.drop_table("analysis_results")
    op.drop_table("designs")
