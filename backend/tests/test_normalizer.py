"""Tests for response classification and normalization.

Covers the three response shapes (direct object, Flowise execution trace,
missing), JSON extraction from agent prose, field coercion and idempotence.
"""

import json

import pytest

from furnicraft.analysis.normalizer import (
    DEFAULT_DIFFICULTY,
    classify,
    coerce_analysis,
    extract_json,
    normalize,
    normalize_raw,
)
from furnicraft.errors import AnalysisParseError
from furnicraft.models.contracts import (
    DirectAnalysis,
    FallbackContext,
    MissingAnalysis,
    TraceAnalysis,
)

_ANALYSIS = {
    "description": "Solid oak dining table with tapered legs",
    "style_category": "Scandinavian",
    "difficulty_level": "Intermediate",
    "estimated_time_hours": 28,
    "estimated_cost_min": 1500,
    "estimated_cost_max": 2600,
    "materials": [
        {
            "name": "Oak boards",
            "category": "wood",
            "quantity": 6,
            "unit": "pieces",
            "estimated_cost": 900,
            "priority": "required",
            "notes": "Kiln dried",
        },
        {
            "name": "Danish oil",
            "category": "finish",
            "quantity": 1,
            "unit": "liter",
            "estimated_cost": 220,
            "priority": "optional",
        },
    ],
}


def _trace(text: str) -> dict:
    """A Flowise agentflow response with execution nodes."""
    return {
        "text": text,
        "question": "Analyze this furniture piece",
        "chatId": "chat-1",
        "chatMessageId": "msg-1",
        "executionId": "exec-1",
        "sessionId": "sess-1",
        "agentFlowExecutedData": [
            {
                "nodeId": "startAgentflow_0",
                "nodeLabel": "Start",
                "data": {
                    "id": "startAgentflow_0",
                    "name": "startAgentflow",
                    "input": {},
                    "output": {},
                },
                "previousNodeIds": [],
                "status": "FINISHED",
            },
            {
                "nodeId": "agentAgentflow_1",
                "nodeLabel": "Materials Agent",
                "data": {
                    "output": {
                        "content": text,
                        "usageMetadata": {"input_tokens": 1200, "output_tokens": 300},
                        "timeMetadata": {"start": 1, "end": 5, "delta": 4},
                    }
                },
                "previousNodeIds": ["startAgentflow_0"],
                "status": "FINISHED",
            },
        ],
    }


class TestClassify:
    def test_direct_schema_object(self):
        result = classify(_ANALYSIS)
        assert isinstance(result, DirectAnalysis)
        assert result.kind == "direct"

    def test_structured_output_wrapper(self):
        result = classify({"json": _ANALYSIS, "text": ""})
        assert isinstance(result, DirectAnalysis)
        assert result.data == _ANALYSIS

    def test_execution_trace(self):
        result = classify(_trace(json.dumps(_ANALYSIS)))
        assert isinstance(result, TraceAnalysis)
        assert [n.nodeId for n in result.execution] == ["startAgentflow_0", "agentAgentflow_1"]

    def test_answer_field_treated_as_text(self):
        result = classify({"answer": "hello"})
        assert isinstance(result, TraceAnalysis)
        assert result.text == "hello"

    def test_plain_string(self):
        assert isinstance(classify("{}"), TraceAnalysis)

    @pytest.mark.parametrize("raw", [None, "", "   ", {}, {"text": ""}, [], 42])
    def test_missing(self, raw):
        assert isinstance(classify(raw), MissingAnalysis)

    def test_malformed_nodes_skipped(self):
        raw = _trace("{}")
        raw["agentFlowExecutedData"].append("garbage")
        result = classify(raw)
        assert len(result.execution) == 2


class TestExtractJson:
    def test_bare_json(self):
        assert extract_json(json.dumps(_ANALYSIS)) == _ANALYSIS

    def test_fenced_block_in_prose(self):
        text = f"Here is the breakdown:\n```json\n{json.dumps(_ANALYSIS)}\n```\nEnjoy!"
        assert extract_json(text) == _ANALYSIS

    def test_braces_in_prose(self):
        text = f"Sure. {json.dumps(_ANALYSIS)} Let me know if you need more."
        assert extract_json(text) == _ANALYSIS

    def test_prose_raises(self):
        with pytest.raises(AnalysisParseError, match="parse"):
            extract_json("This is a lovely oak table made by hand.")

    def test_non_object_raises(self):
        with pytest.raises(AnalysisParseError, match="not an object"):
            extract_json("[1, 2, 3]")

    def test_broken_json_raises(self):
        with pytest.raises(AnalysisParseError):
            extract_json('{"description": "missing brace"')


class TestCoerceAnalysis:
    def test_well_formed_passthrough(self):
        result = coerce_analysis(_ANALYSIS, raw=_ANALYSIS)
        assert result.description == _ANALYSIS["description"]
        assert result.style_category == "scandinavian"
        assert result.difficulty_level == "intermediate"
        assert result.estimated_cost_min == 1500
        assert result.estimated_cost_max == 2600
        assert [m.name for m in result.materials] == ["Oak boards", "Danish oil"]
        assert result.materials[1].notes is None

    def test_swapped_costs_are_reordered(self):
        data = {**_ANALYSIS, "estimated_cost_min": 3000, "estimated_cost_max": 1000}
        result = coerce_analysis(data, raw=data)
        assert (result.estimated_cost_min, result.estimated_cost_max) == (1000, 3000)

    def test_negative_costs_clamped(self):
        data = {**_ANALYSIS, "estimated_cost_min": -50, "estimated_cost_max": 100}
        result = coerce_analysis(data, raw=data)
        assert result.estimated_cost_min == 0

    def test_currency_strings_parsed(self):
        data = {**_ANALYSIS, "estimated_cost_min": "R1,250.50", "estimated_cost_max": "R 2 000"}
        result = coerce_analysis(data, raw=data)
        assert result.estimated_cost_min == 1250.5
        assert result.estimated_cost_max == 2000

    def test_single_bound_mirrors(self):
        data = {"description": "x", "estimated_cost_max": 900, "materials": []}
        result = coerce_analysis(data, raw=data)
        assert result.estimated_cost_min == result.estimated_cost_max == 900

    def test_costs_derived_from_materials(self):
        data = {"materials": _ANALYSIS["materials"]}
        result = coerce_analysis(data, raw=data)
        assert result.estimated_cost_min == 900  # required only
        assert result.estimated_cost_max == 1120  # everything

    def test_missing_cost_information_raises(self):
        with pytest.raises(AnalysisParseError, match="missing"):
            coerce_analysis({"description": "Just words"}, raw=None)

    def test_materials_not_a_list_raises(self):
        with pytest.raises(AnalysisParseError, match="materials"):
            coerce_analysis({"materials": "oak"}, raw=None)

    def test_unknown_difficulty_defaults(self):
        data = {**_ANALYSIS, "difficulty_level": "expert"}
        assert coerce_analysis(data, raw=data).difficulty_level == DEFAULT_DIFFICULTY

    def test_non_positive_time_defaults_to_one(self):
        data = {**_ANALYSIS, "estimated_time_hours": 0}
        assert coerce_analysis(data, raw=data).estimated_time_hours == 1

    def test_material_defaults_never_null(self):
        data = {"estimated_cost_min": 1, "estimated_cost_max": 2, "materials": [{"name": "Glue"}]}
        material = coerce_analysis(data, raw=data).materials[0]
        assert material.quantity == 0
        assert material.estimated_cost == 0
        assert material.unit == "pieces"
        assert material.category == "other"
        assert material.priority == "required"

    def test_nameless_materials_dropped(self):
        data = {
            "estimated_cost_min": 1,
            "estimated_cost_max": 2,
            "materials": [
                {"quantity": 2},
                "oak",
                {"name": "  "},
                {"name": "Screws", "quantity": None},
            ],
        }
        result = coerce_analysis(data, raw=data)
        assert [m.name for m in result.materials] == ["Screws"]

    def test_unknown_priority_defaults_to_required(self):
        data = {"materials": [{"name": "Nails", "priority": "must-have", "estimated_cost": 5}]}
        assert coerce_analysis(data, raw=data).materials[0].priority == "required"


class TestNormalize:
    def test_direct(self):
        result = normalize(DirectAnalysis(data=_ANALYSIS))
        assert result.source == "flowise"
        assert result.raw_response == _ANALYSIS

    def test_trace_keeps_full_response_as_raw(self):
        raw = _trace(json.dumps(_ANALYSIS))
        result = normalize_raw(raw)
        assert result.estimated_cost_max == 2600
        assert result.raw_response == raw

    def test_trace_with_prose_raises(self):
        with pytest.raises(AnalysisParseError):
            normalize_raw(_trace("I could not see the image clearly, sorry."))

    def test_missing_uses_fallback(self):
        result = normalize(MissingAnalysis(), FallbackContext(title="Oak Dining Table", seed=1))
        assert result.source == "heuristic"
        assert result.raw_response["category"] == "table"

    def test_missing_without_fallback_raises(self):
        with pytest.raises(AnalysisParseError, match="empty"):
            normalize(MissingAnalysis())

    @pytest.mark.parametrize(
        "raw",
        [
            _ANALYSIS,
            _trace(json.dumps(_ANALYSIS)),
            "```json\n" + json.dumps(_ANALYSIS) + "\n```",
        ],
    )
    def test_idempotent(self, raw):
        """Normalizing the same response twice gives identical output."""
        first = normalize_raw(raw)
        second = normalize_raw(raw)
        assert first.model_dump_json() == second.model_dump_json()

    def test_invariants(self):
        result = normalize_raw(_trace(json.dumps(_ANALYSIS)))
        assert result.estimated_cost_min <= result.estimated_cost_max
        assert result.difficulty_level in ("beginner", "intermediate", "advanced")
        assert result.estimated_time_hours > 0
