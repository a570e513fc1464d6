"""Tests for the upload orchestrator — upload, analysis and the status machine.

Analyzers are stubbed so each test controls exactly what the AI "says".
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from furnicraft.analysis.analyzers import HeuristicAnalyzer
from furnicraft.analysis.orchestrator import UploadOrchestrator
from furnicraft.errors import (
    AnalysisParseError,
    AnalysisServiceError,
    DatabaseError,
    DesignStateError,
    UploadError,
    ValidationError,
)
from furnicraft.models.contracts import MaterialDraft, NormalizedAnalysis

_MAX = 1024 * 1024


class _StubAnalyzer:
    name = "stub"

    def __init__(self, result: NormalizedAnalysis | None = None, error: Exception | None = None):
        self.result = result
        self.error = error
        self.calls = 0

    async def analyze(self, design, image):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.result


def _normalized() -> NormalizedAnalysis:
    return NormalizedAnalysis(
        description="Oak dining table",
        style_category="rustic",
        difficulty_level="intermediate",
        estimated_time_hours=24,
        estimated_cost_min=1500,
        estimated_cost_max=2600,
        materials=[
            MaterialDraft(name="Wax", priority="optional", estimated_cost=80),
            MaterialDraft(name="Oak boards", priority="required", estimated_cost=900),
        ],
    )


@pytest.fixture()
def make_orchestrator(store, storage):
    def _make(analyzer=None) -> UploadOrchestrator:
        return UploadOrchestrator(
            store, storage, analyzer or HeuristicAnalyzer(seed=1), max_upload_bytes=_MAX
        )

    return _make


async def _upload(orchestrator: UploadOrchestrator, data: bytes, title: str = "Oak Dining Table"):
    return await orchestrator.upload(
        data, filename="table.png", content_type="image/png", title=title
    )


class TestUpload:
    @pytest.mark.asyncio
    async def test_creates_pending_design_and_blob(
        self, make_orchestrator, store, storage, png_bytes
    ):
        design, image = await _upload(make_orchestrator(), png_bytes)

        assert design.status == "pending"
        assert design.title == "Oak Dining Table"
        assert design.original_filename == "table.png"
        [path] = storage.objects
        assert path.startswith("designs/") and path.endswith(".png")
        assert design.image_url.endswith(path)
        assert await store.get_design(design.id) is not None
        assert image.extension == "png"

    @pytest.mark.asyncio
    async def test_blank_description_stored_as_none(self, make_orchestrator, png_bytes):
        design, _ = await make_orchestrator().upload(
            png_bytes, filename="t.png", content_type="image/png", title="T", description="   "
        )
        assert design.description is None

    @pytest.mark.asyncio
    async def test_empty_title_rejected_before_storage(self, make_orchestrator, storage, png_bytes):
        with pytest.raises(ValidationError):
            await _upload(make_orchestrator(), png_bytes, title="  ")
        assert storage.objects == {}

    @pytest.mark.asyncio
    async def test_non_image_rejected_before_storage(self, make_orchestrator, storage):
        orchestrator = make_orchestrator()
        with pytest.raises(ValidationError):
            await orchestrator.upload(
                b"%PDF-1.4", filename="plan.pdf", content_type="application/pdf", title="Plan"
            )
        assert storage.objects == {}

    @pytest.mark.asyncio
    async def test_storage_failure_creates_no_design(
        self, make_orchestrator, store, storage, png_bytes
    ):
        storage.upload = AsyncMock(side_effect=UploadError("bucket unavailable"))
        with pytest.raises(UploadError):
            await _upload(make_orchestrator(), png_bytes)
        assert store.designs == {}

    @pytest.mark.asyncio
    async def test_insert_failure_leaves_orphan_blob(
        self, make_orchestrator, store, storage, png_bytes
    ):
        """The blob is not rolled back when the row insert fails."""
        store.create_design = AsyncMock(side_effect=DatabaseError("insert failed"))
        with pytest.raises(DatabaseError):
            await _upload(make_orchestrator(), png_bytes)
        assert len(storage.objects) == 1


class TestAnalyze:
    @pytest.mark.asyncio
    async def test_success_completes_design(self, make_orchestrator, store, png_bytes):
        orchestrator = make_orchestrator(_StubAnalyzer(result=_normalized()))
        design, image = await _upload(orchestrator, png_bytes)

        payload = await orchestrator.analyze(design, image)

        assert payload.analysis.design_id == design.id
        assert [m.name for m in payload.materials] == ["Oak boards", "Wax"]
        assert (await store.get_design(design.id)).status == "completed"

    @pytest.mark.asyncio
    async def test_upstream_500_marks_failed(self, make_orchestrator, store, png_bytes):
        error = AnalysisServiceError("Flowise API error: 500", upstream_status=500)
        orchestrator = make_orchestrator(_StubAnalyzer(error=error))
        design, image = await _upload(orchestrator, png_bytes)

        with pytest.raises(AnalysisServiceError):
            await orchestrator.analyze(design, image)

        assert (await store.get_design(design.id)).status == "failed"
        assert await store.get_analysis(design.id) is None

    @pytest.mark.asyncio
    async def test_unparseable_response_marks_failed(self, make_orchestrator, store, png_bytes):
        error = AnalysisParseError("Failed to parse AI response as JSON")
        orchestrator = make_orchestrator(_StubAnalyzer(error=error))
        design, image = await _upload(orchestrator, png_bytes)

        with pytest.raises(AnalysisParseError):
            await orchestrator.analyze(design, image)
        assert (await store.get_design(design.id)).status == "failed"

    @pytest.mark.asyncio
    async def test_save_failure_marks_failed(self, make_orchestrator, store, png_bytes):
        orchestrator = make_orchestrator(_StubAnalyzer(result=_normalized()))
        design, image = await _upload(orchestrator, png_bytes)
        store.save_analysis = AsyncMock(side_effect=DatabaseError("insert failed"))

        with pytest.raises(DatabaseError):
            await orchestrator.analyze(design, image)
        assert (await store.get_design(design.id)).status == "failed"

    @pytest.mark.asyncio
    async def test_non_pending_design_rejected(self, make_orchestrator, store, png_bytes):
        analyzer = _StubAnalyzer(result=_normalized())
        orchestrator = make_orchestrator(analyzer)
        design, image = await _upload(orchestrator, png_bytes)
        await orchestrator.analyze(design, image)

        completed = await store.get_design(design.id)
        with pytest.raises(DesignStateError, match="only pending"):
            await orchestrator.analyze(completed, image)
        assert analyzer.calls == 1

    @pytest.mark.asyncio
    async def test_stale_pending_snapshot_leaves_completed_design_alone(
        self, make_orchestrator, store, png_bytes
    ):
        """Re-analysing with the object upload returned checks the stored status."""
        analyzer = _StubAnalyzer(result=_normalized())
        orchestrator = make_orchestrator(analyzer)
        design, image = await _upload(orchestrator, png_bytes)
        await orchestrator.analyze(design, image)
        assert design.status == "pending"

        with pytest.raises(DesignStateError):
            await orchestrator.analyze(design, image)

        assert (await store.get_design(design.id)).status == "completed"
        assert await store.get_analysis(design.id) is not None
        assert analyzer.calls == 1

    @pytest.mark.asyncio
    async def test_concurrent_triggers_analyze_once(self, make_orchestrator, store, png_bytes):
        analyzer = _StubAnalyzer(result=_normalized())
        orchestrator = make_orchestrator(analyzer)
        design, image = await _upload(orchestrator, png_bytes)

        outcomes = await asyncio.gather(
            orchestrator.analyze(design, image),
            orchestrator.analyze(design, image),
            return_exceptions=True,
        )

        assert sum(isinstance(o, DesignStateError) for o in outcomes) == 1
        assert analyzer.calls == 1
        assert (await store.get_design(design.id)).status == "completed"

    @pytest.mark.asyncio
    async def test_failure_to_start_marks_failed(self, make_orchestrator, store, png_bytes):
        analyzer = _StubAnalyzer(result=_normalized())
        orchestrator = make_orchestrator(analyzer)
        design, image = await _upload(orchestrator, png_bytes)
        store.start_analysis = AsyncMock(side_effect=DatabaseError("update failed"))

        with pytest.raises(DatabaseError):
            await orchestrator.analyze(design, image)

        assert (await store.get_design(design.id)).status == "failed"
        assert analyzer.calls == 0

    @pytest.mark.asyncio
    async def test_heuristic_analysis_end_to_end(self, make_orchestrator, store, png_bytes):
        payload = await make_orchestrator().submit(
            png_bytes, filename="t.png", content_type="image/png", title="Oak Dining Table"
        )
        assert payload.analysis.estimated_cost_min <= payload.analysis.estimated_cost_max
        assert payload.materials
        design = await store.get_design(payload.analysis.design_id)
        assert design.status == "completed"


class TestAnalyzeInBackground:
    @pytest.mark.asyncio
    async def test_never_raises(self, make_orchestrator, store, png_bytes):
        orchestrator = make_orchestrator(_StubAnalyzer(error=AnalysisParseError("bad")))
        design, image = await _upload(orchestrator, png_bytes)

        await orchestrator.analyze_in_background(design, image)

        assert (await store.get_design(design.id)).status == "failed"

    @pytest.mark.asyncio
    async def test_unexpected_error_also_swallowed(self, make_orchestrator, store, png_bytes):
        orchestrator = make_orchestrator(_StubAnalyzer(error=RuntimeError("boom")))
        design, image = await _upload(orchestrator, png_bytes)

        await orchestrator.analyze_in_background(design, image)

        assert (await store.get_design(design.id)).status == "failed"

    @pytest.mark.asyncio
    async def test_start_failure_never_leaves_design_pending(
        self, make_orchestrator, store, png_bytes
    ):
        orchestrator = make_orchestrator(_StubAnalyzer(result=_normalized()))
        design, image = await _upload(orchestrator, png_bytes)
        store.start_analysis = AsyncMock(side_effect=DatabaseError("update failed"))

        await orchestrator.analyze_in_background(design, image)

        assert (await store.get_design(design.id)).status == "failed"
