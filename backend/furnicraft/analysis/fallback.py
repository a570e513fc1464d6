"""Heuristic fallback analysis — keyword matching over title + description.

Used when the AI collaborator is disabled or returns nothing usable.
Categories are tried in declaration order; the one whose keywords occur
most often in the text wins, ties keep the earlier category and no match
at all falls back to "table". Costs and time get a multiplicative
variation drawn from `random.Random(seed)` so repeated uploads do not
produce identical numbers, while a fixed seed reproduces them exactly.
"""

from __future__ import annotations

import random
from dataclasses import dataclass

import structlog

from furnicraft.models.contracts import MaterialDraft, NormalizedAnalysis

log = structlog.get_logger("fallback")

DEFAULT_CATEGORY = "table"

TIME_VARIATION = (0.85, 1.15)
COST_VARIATION = (0.8, 1.2)

STYLE_CATEGORIES: tuple[str, ...] = (
    "modern",
    "traditional",
    "rustic",
    "industrial",
    "scandinavian",
    "minimalist",
)


@dataclass(frozen=True)
class FurniturePattern:
    keywords: tuple[str, ...]
    description: str
    difficulty: str
    time_range: tuple[float, float]
    cost_range: tuple[float, float]
    materials: tuple[MaterialDraft, ...]


def _m(
    name: str,
    category: str,
    quantity: float,
    unit: str,
    cost: float,
    priority: str,
    notes: str,
) -> MaterialDraft:
    return MaterialDraft(
        name=name,
        category=category,
        quantity=quantity,
        unit=unit,
        estimated_cost=cost,
        priority=priority,  # type: ignore[arg-type]
        notes=notes,
    )


FURNITURE_PATTERNS: dict[str, FurniturePattern] = {
    "chair": FurniturePattern(
        keywords=("chair", "seat", "backrest"),
        description="Comfortable seating furniture",
        difficulty="intermediate",
        time_range=(15, 25),
        cost_range=(800, 1500),
        materials=(
            _m("Pine Wood Planks", "wood", 3, "pieces", 120, "required", "For seat and backrest"),
            _m("Wood Screws", "hardware", 20, "pieces", 25, "required", "50mm wood screws"),
            _m("Wood Glue", "adhesive", 1, "bottle", 35, "required", "PVA wood glue"),
            _m("Sandpaper Set", "tools", 1, "set", 45, "required", "120, 220, 320 grit"),
            _m("Wood Stain", "finish", 1, "liter", 180, "optional", "Natural wood stain"),
        ),
    ),
    "table": FurniturePattern(
        keywords=("table", "desk", "surface"),
        description="Functional table or desk furniture",
        difficulty="intermediate",
        time_range=(20, 35),
        cost_range=(1200, 2500),
        materials=(
            _m("Oak Wood Planks", "wood", 6, "pieces", 200, "required", "For tabletop and legs"),
            _m("Table Legs", "wood", 4, "pieces", 160, "required", "Pre-made or custom cut"),
            _m("Corner Brackets", "hardware", 8, "pieces", 80, "required", "Metal corner supports"),
            _m("Wood Screws", "hardware", 30, "pieces", 40, "required", "Various sizes"),
            _m("Polyurethane Finish", "finish", 1, "liter", 250, "required", "Protective coating"),
        ),
    ),
    "cabinet": FurniturePattern(
        keywords=("cabinet", "storage", "cupboard", "wardrobe"),
        description="Storage cabinet or wardrobe",
        difficulty="advanced",
        time_range=(40, 60),
        cost_range=(2000, 4000),
        materials=(
            _m("MDF Boards", "wood", 8, "pieces", 320, "required", "18mm thick MDF"),
            _m("Cabinet Hinges", "hardware", 6, "pieces", 120, "required", "Soft-close hinges"),
            _m("Drawer Slides", "hardware", 4, "pairs", 200, "optional", "Full extension slides"),
            _m("Cabinet Handles", "hardware", 8, "pieces", 160, "required", "Modern brushed steel"),
            _m("Edge Banding", "finish", 10, "meters", 80, "required", "Matching wood veneer"),
        ),
    ),
    "shelf": FurniturePattern(
        keywords=("shelf", "bookshelf", "shelving"),
        description="Wall-mounted or standing shelf unit",
        difficulty="beginner",
        time_range=(8, 15),
        cost_range=(400, 800),
        materials=(
            _m(
                "Pine Shelving Boards", "wood", 4, "pieces", 120, "required",
                "200mm x 25mm planks",
            ),
            _m(
                "Shelf Brackets", "hardware", 8, "pieces", 80, "required",
                "Heavy-duty metal brackets",
            ),
            _m(
                "Wall Anchors", "hardware", 16, "pieces", 30, "required",
                "For hollow wall mounting",
            ),
            _m("Wood Screws", "hardware", 20, "pieces", 25, "required", "40mm screws"),
        ),
    ),
}


def match_category(title: str, description: str | None = None) -> str:
    """Return the furniture category with the most keyword hits in the text."""
    text = f"{title} {description or ''}".lower()
    best_category = DEFAULT_CATEGORY
    best_score = 0
    for category, pattern in FURNITURE_PATTERNS.items():
        score = sum(1 for keyword in pattern.keywords if keyword in text)
        if score > best_score:
            best_category, best_score = category, score
    return best_category


def generate_fallback(
    title: str,
    description: str | None = None,
    seed: int | None = None,
) -> NormalizedAnalysis:
    """Build a plausible analysis for the matched category."""
    category = match_category(title, description)
    pattern = FURNITURE_PATTERNS[category]
    rng = random.Random(seed)

    time_variation = rng.uniform(*TIME_VARIATION)
    cost_variation = rng.uniform(*COST_VARIATION)
    style = rng.choice(STYLE_CATEGORIES)

    mid_time = (pattern.time_range[0] + pattern.time_range[1]) / 2
    materials = [
        draft.model_copy(update={"estimated_cost": round(draft.estimated_cost * cost_variation)})
        for draft in pattern.materials
    ]

    log.info("fallback_generated", category=category, style=style, seeded=seed is not None)
    return NormalizedAnalysis(
        description=(
            f"{pattern.description} with custom design elements. This piece combines "
            "functionality with aesthetic appeal, suitable for modern South African homes."
        ),
        style_category=style,
        difficulty_level=pattern.difficulty,  # type: ignore[arg-type]
        estimated_time_hours=max(1, round(mid_time * time_variation)),
        estimated_cost_min=round(pattern.cost_range[0] * cost_variation),
        estimated_cost_max=round(pattern.cost_range[1] * cost_variation),
        materials=materials,
        source="heuristic",
        raw_response={"category": category, "seed": seed},
    )
