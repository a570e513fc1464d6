"""Analyzers — produce a NormalizedAnalysis for one design image.

FlowiseAnalyzer asks the hosted agentflow; HeuristicAnalyzer runs the
keyword fallback locally. Both go through the normalizer so every result
has the same shape.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import structlog

from furnicraft.analysis.normalizer import classify, normalize
from furnicraft.analysis.validation import ImageUpload
from furnicraft.models.contracts import (
    Design,
    FallbackContext,
    MissingAnalysis,
    NormalizedAnalysis,
)
from furnicraft.utils.flowise import FlowiseClient, build_prediction_request

log = structlog.get_logger("analyzers")


@runtime_checkable
class Analyzer(Protocol):
    name: str

    async def analyze(self, design: Design, image: ImageUpload) -> NormalizedAnalysis: ...


class HeuristicAnalyzer:
    name = "heuristic"

    def __init__(self, seed: int | None = None) -> None:
        self.seed = seed

    async def analyze(self, design: Design, image: ImageUpload) -> NormalizedAnalysis:
        context = FallbackContext(
            title=design.title, description=design.description, seed=self.seed
        )
        return normalize(MissingAnalysis(), context)


class FlowiseAnalyzer:
    name = "flowise"

    def __init__(
        self,
        client: FlowiseClient,
        question: str,
        *,
        fallback_on_missing: bool = True,
        seed: int | None = None,
    ) -> None:
        self.client = client
        self.question = question
        self.fallback_on_missing = fallback_on_missing
        self.seed = seed

    def _question(self, design: Design) -> str:
        parts = [self.question, f"Title: {design.title}"]
        if design.description:
            parts.append(f"Description: {design.description}")
        return "\n\n".join(parts)

    async def analyze(self, design: Design, image: ImageUpload) -> NormalizedAnalysis:
        request = build_prediction_request(
            self._question(design), image.data, image.content_type, image.filename
        )
        raw = await self.client.predict(request)
        response = classify(raw)
        log.info("flowise_response_classified", design_id=design.id, kind=response.kind)

        fallback = None
        if self.fallback_on_missing:
            fallback = FallbackContext(
                title=design.title, description=design.description, seed=self.seed
            )
        return normalize(response, fallback)
