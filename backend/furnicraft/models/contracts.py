"""FurniCraft contract models.

Domain shapes shared by the store, the analysis pipeline and the API.
The AI response is modeled as a tagged variant (`kind`) so the normalizer
never has to guess a payload's shape from which fields happen to be present.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field

DesignStatus = Literal["pending", "analyzing", "completed", "failed"]
DifficultyLevel = Literal["beginner", "intermediate", "advanced"]
MaterialPriority = Literal["required", "optional", "alternative"]

DIFFICULTY_LEVELS: tuple[str, ...] = ("beginner", "intermediate", "advanced")
MATERIAL_PRIORITIES: tuple[str, ...] = ("required", "optional", "alternative")


def priority_rank(priority: str) -> int:
    """Sort key for materials: required, then optional, then alternative."""
    try:
        return MATERIAL_PRIORITIES.index(priority)
    except ValueError:
        return len(MATERIAL_PRIORITIES)


# === Stored entities ===


class Design(BaseModel):
    id: str
    title: str
    description: str | None = None
    image_url: str
    original_filename: str | None = None
    status: DesignStatus = "pending"
    created_at: datetime
    updated_at: datetime | None = None


class AnalysisResult(BaseModel):
    id: str
    design_id: str
    ai_description: str
    estimated_cost_min: float = Field(ge=0)
    estimated_cost_max: float = Field(ge=0)
    difficulty_level: DifficultyLevel
    estimated_time_hours: float = Field(gt=0)
    style_category: str
    raw_ai_response: Any = None
    created_at: datetime | None = None


class Material(BaseModel):
    id: str
    analysis_id: str
    name: str
    category: str
    quantity: float = Field(ge=0, default=0)
    unit: str
    estimated_cost: float = Field(ge=0, default=0)
    priority: MaterialPriority = "required"
    notes: str | None = None


class SupplierPrice(BaseModel):
    id: str
    material_id: str
    supplier_name: str
    price: float = Field(ge=0)
    location: str | None = None
    delivery_time_days: int | None = None
    quality_rating: float | None = Field(default=None, ge=0, le=5)
    is_available: bool = True


class AnalysisPayload(BaseModel):
    """A completed analysis with its materials, priority-ordered."""

    analysis: AnalysisResult
    materials: list[Material] = []


# === Normalized analysis (pre-persistence) ===


class MaterialDraft(BaseModel):
    name: str = Field(min_length=1)
    category: str = "other"
    quantity: float = Field(ge=0, default=0)
    unit: str = "pieces"
    estimated_cost: float = Field(ge=0, default=0)
    priority: MaterialPriority = "required"
    notes: str | None = None


class NormalizedAnalysis(BaseModel):
    description: str
    style_category: str
    difficulty_level: DifficultyLevel
    estimated_time_hours: float = Field(gt=0)
    estimated_cost_min: float = Field(ge=0)
    estimated_cost_max: float = Field(ge=0)
    materials: list[MaterialDraft] = []
    source: Literal["flowise", "heuristic"] = "flowise"
    raw_response: Any = None


# === Flowise (AI collaborator) ===


class FlowiseUpload(BaseModel):
    data: str  # data URL: data:<mime>;base64,<payload>
    type: str
    name: str


class FlowisePredictionRequest(BaseModel):
    question: str
    uploads: list[FlowiseUpload] = []
    chatId: str | None = None
    streaming: bool = False


class FlowiseExecutionNode(BaseModel):
    """One agent step of a Flowise agentflow run; passed through for display."""

    model_config = {"extra": "allow"}

    nodeId: str
    nodeLabel: str = ""
    data: dict[str, Any] = {}
    previousNodeIds: list[str] = []
    status: str = ""


class DirectAnalysis(BaseModel):
    """The AI answered with an object already shaped like the target schema."""

    kind: Literal["direct"] = "direct"
    data: dict[str, Any]


class TraceAnalysis(BaseModel):
    """The AI answered with an execution trace; only `text` is parsed."""

    kind: Literal["trace"] = "trace"
    text: str
    execution: list[FlowiseExecutionNode] = []
    raw: Any = None


class MissingAnalysis(BaseModel):
    """No usable response; the heuristic fallback takes over."""

    kind: Literal["missing"] = "missing"
    raw: Any = None


AnalysisResponse = Annotated[
    DirectAnalysis | TraceAnalysis | MissingAnalysis,
    Field(discriminator="kind"),
]


class FallbackContext(BaseModel):
    title: str
    description: str | None = None
    seed: int | None = None


# === API Request/Response Models ===


class DesignListResponse(BaseModel):
    designs: list[Design] = []


class AnalysisPendingResponse(BaseModel):
    design_id: str
    status: DesignStatus
    retry_after_seconds: float


class SupplierPriceView(SupplierPrice):
    is_best_price: bool = False


class SupplierComparisonResponse(BaseModel):
    material_id: str
    suppliers: list[SupplierPriceView] = []


class ErrorResponse(BaseModel):
    error: str
    message: str
    retryable: bool
    detail: str | None = None
