"""Result normalizer — maps any AI response onto NormalizedAnalysis.

Two steps:
1. `classify` tags the raw response as direct / trace / missing.
2. `normalize` turns the tagged variant into the fixed schema, parsing the
   trace's final text as JSON, or running the heuristic fallback when the
   response is missing.

Both are pure: the same input always yields the same output (the fallback
is only deterministic when a seed is given).
"""

from __future__ import annotations

import json
import re
from typing import Any

import structlog

from furnicraft.analysis.fallback import generate_fallback
from furnicraft.errors import AnalysisParseError
from furnicraft.models.contracts import (
    DIFFICULTY_LEVELS,
    MATERIAL_PRIORITIES,
    AnalysisResponse,
    DirectAnalysis,
    FallbackContext,
    FlowiseExecutionNode,
    MaterialDraft,
    MissingAnalysis,
    NormalizedAnalysis,
    TraceAnalysis,
)

log = structlog.get_logger("normalizer")

_SCHEMA_KEYS = frozenset({"materials", "estimated_cost_min", "estimated_cost_max"})
_FENCED_JSON = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)
_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")

DEFAULT_DIFFICULTY = "intermediate"
DEFAULT_PRIORITY = "required"
DEFAULT_STYLE = "custom"
DEFAULT_DESCRIPTION = "Custom furniture design"


# --- classification ---


def _execution_nodes(raw: dict[str, Any]) -> list[FlowiseExecutionNode]:
    nodes = []
    for item in raw.get("agentFlowExecutedData") or []:
        if isinstance(item, dict) and item.get("nodeId"):
            nodes.append(FlowiseExecutionNode.model_validate(item))
        else:
            log.warning("skipped_malformed_execution_node", data=repr(item)[:200])
    return nodes


def classify(raw: Any) -> AnalysisResponse:
    """Tag a raw AI response with its shape."""
    if isinstance(raw, dict):
        if _SCHEMA_KEYS & raw.keys():
            return DirectAnalysis(data=raw)
        # Flowise structured-output flows wrap the object under "json"
        if isinstance(raw.get("json"), dict) and _SCHEMA_KEYS & raw["json"].keys():
            return DirectAnalysis(data=raw["json"])
        text = raw.get("text")
        if not isinstance(text, str):
            text = raw.get("answer")
        if isinstance(text, str) and text.strip():
            return TraceAnalysis(text=text, execution=_execution_nodes(raw), raw=raw)
        return MissingAnalysis(raw=raw)
    if isinstance(raw, str) and raw.strip():
        return TraceAnalysis(text=raw, raw=raw)
    return MissingAnalysis(raw=raw)


# --- JSON extraction ---


def extract_json(text: str) -> dict[str, Any]:
    """Parse the JSON object embedded in an agent's final answer.

    Tries the whole text, then fenced code blocks, then the outermost
    brace-delimited span. Raises AnalysisParseError if none is an object.
    """
    candidates = [text.strip()]
    candidates.extend(block.strip() for block in _FENCED_JSON.findall(text))
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start : end + 1])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
        raise AnalysisParseError(
            f"AI response is JSON but not an object (got {type(parsed).__name__})"
        )
    raise AnalysisParseError("Failed to parse AI response as JSON")


# --- coercion ---


def _number(value: Any, default: float = 0.0) -> float:
    """Best-effort numeric coercion; "R1,250.50" → 1250.5, "R 2 000" → 2000."""
    if isinstance(value, bool) or value is None:
        return default
    if isinstance(value, int | float):
        return float(value)
    if isinstance(value, str):
        match = _NUMBER.search(value.replace(",", "").replace(" ", ""))
        if match:
            return float(match.group())
    return default


def _text(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _choice(value: Any, allowed: tuple[str, ...], default: str) -> str:
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in allowed:
            return lowered
    return default


def _material(item: Any) -> MaterialDraft | None:
    if not isinstance(item, dict) or not _text(item.get("name"), ""):
        log.warning("skipped_malformed_material", data=repr(item)[:200])
        return None
    notes = item.get("notes")
    return MaterialDraft(
        name=_text(item.get("name"), ""),
        category=_text(item.get("category"), "other"),
        quantity=max(0.0, _number(item.get("quantity"))),
        unit=_text(item.get("unit"), "pieces"),
        estimated_cost=max(0.0, _number(item.get("estimated_cost"))),
        priority=_choice(  # type: ignore[arg-type]
            item.get("priority"), MATERIAL_PRIORITIES, DEFAULT_PRIORITY
        ),
        notes=notes.strip() if isinstance(notes, str) and notes.strip() else None,
    )


def _cost_bounds(data: dict[str, Any], materials: list[MaterialDraft]) -> tuple[float, float]:
    has_min = data.get("estimated_cost_min") is not None
    has_max = data.get("estimated_cost_max") is not None
    if not has_min and not has_max:
        if "materials" not in data:
            raise AnalysisParseError("AI response is missing cost estimates and materials")
        # Required items bound the low end, every item the high end
        low = sum(m.estimated_cost for m in materials if m.priority == "required")
        high = sum(m.estimated_cost for m in materials)
        return low, high

    low = max(0.0, _number(data.get("estimated_cost_min")))
    high = max(0.0, _number(data.get("estimated_cost_max")))
    if not has_min:
        low = high
    elif not has_max:
        high = low
    return (low, high) if low <= high else (high, low)


def coerce_analysis(data: dict[str, Any], *, raw: Any) -> NormalizedAnalysis:
    """Coerce a parsed AI object into the fixed schema."""
    materials_data = data.get("materials")
    if materials_data is not None and not isinstance(materials_data, list):
        raise AnalysisParseError("AI response field 'materials' is not a list")
    materials = [m for m in (_material(item) for item in materials_data or []) if m is not None]

    low, high = _cost_bounds(data, materials)
    hours = _number(data.get("estimated_time_hours"))

    return NormalizedAnalysis(
        description=_text(data.get("description"), DEFAULT_DESCRIPTION),
        style_category=_text(data.get("style_category"), DEFAULT_STYLE).lower(),
        difficulty_level=_choice(  # type: ignore[arg-type]
            data.get("difficulty_level"), DIFFICULTY_LEVELS, DEFAULT_DIFFICULTY
        ),
        estimated_time_hours=hours if hours > 0 else 1.0,
        estimated_cost_min=low,
        estimated_cost_max=high,
        materials=materials,
        source="flowise",
        raw_response=raw,
    )


# --- entry point ---


def normalize(
    response: AnalysisResponse,
    fallback: FallbackContext | None = None,
) -> NormalizedAnalysis:
    """Normalize a classified response.

    A missing response needs a fallback context; without one it is a
    parse failure.
    """
    if isinstance(response, DirectAnalysis):
        return coerce_analysis(response.data, raw=response.data)
    if isinstance(response, TraceAnalysis):
        data = extract_json(response.text)
        return coerce_analysis(data, raw=response.raw if response.raw is not None else data)
    if isinstance(response, MissingAnalysis):
        if fallback is None:
            raise AnalysisParseError("AI response was empty")
        log.info("normalizer_using_fallback", title=fallback.title)
        return generate_fallback(fallback.title, fallback.description, seed=fallback.seed)
    raise AnalysisParseError(f"Unsupported response kind: {type(response).__name__}")


def normalize_raw(raw: Any, fallback: FallbackContext | None = None) -> NormalizedAnalysis:
    return normalize(classify(raw), fallback)
