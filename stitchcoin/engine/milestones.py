"""
stitchcoin.engine.milestones — Milestone Progress
==================================================

Milestones are static definitions (category + target).  Progress and
completion are derived on every read from a :class:`MilestoneContext`;
nothing is stored.

Each :class:`MilestoneCategory` maps to a source function in
:data:`CATEGORY_SOURCES` that pulls the current value out of the context.

This module is pure calculation — no database I/O.
"""

from __future__ import annotations

import enum
from collections.abc import Callable, Iterable
from dataclasses import dataclass


class MilestoneCategory(enum.StrEnum):
    STREAK = "streak"
    CLAIMS = "claims"
    COINS = "coins"
    POINTS = "points"


@dataclass(frozen=True, slots=True)
class MilestoneDefinition:
    id: str
    category: MilestoneCategory
    target: int
    title: str
    description: str = ""


# category → (targets, title template, description template)
MILESTONE_TARGETS: dict[MilestoneCategory, tuple[tuple[int, ...], str, str]] = {
    MilestoneCategory.STREAK: (
        (7, 14, 30, 60, 100), "{} Day Streak", "Maintain a {} day login streak",
    ),
    MilestoneCategory.CLAIMS: (
        (10, 30, 60, 100, 365), "{} Days Claimed", "Claim daily coins {} times",
    ),
    MilestoneCategory.COINS: (
        (100, 500, 1000, 5000), "{} Coins Earned", "Earn a total of {} coins",
    ),
    MilestoneCategory.POINTS: (
        (100, 500, 1000, 5000), "{} Points Earned", "Earn a total of {} points",
    ),
}

DEFAULT_MILESTONES: tuple[MilestoneDefinition, ...] = tuple(
    MilestoneDefinition(
        id=f"{category.value}_{target}",
        category=category,
        target=target,
        title=title.format(target),
        description=description.format(target),
    )
    for category, (targets, title, description) in MILESTONE_TARGETS.items()
    for target in targets
)


# ---------------------------------------------------------------------------
# Milestone context — the values every category reads from
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class MilestoneContext:
    """Snapshot of a user's lifetime figures.

    Parameters
    ----------
    longest_streak : Longest run of consecutive claim days ever.
    total_claims : Number of daily claim records.
    lifetime_coins : Sum of positive coin transactions.
    lifetime_points : Sum of positive point transactions.
    """

    longest_streak: int = 0
    total_claims: int = 0
    lifetime_coins: int = 0
    lifetime_points: int = 0


CATEGORY_SOURCES: dict[MilestoneCategory, Callable[[MilestoneContext], int]] = {
    MilestoneCategory.STREAK: lambda ctx: ctx.longest_streak,
    MilestoneCategory.CLAIMS: lambda ctx: ctx.total_claims,
    MilestoneCategory.COINS: lambda ctx: ctx.lifetime_coins,
    MilestoneCategory.POINTS: lambda ctx: ctx.lifetime_points,
}


@dataclass(frozen=True, slots=True)
class MilestoneProgress:
    milestone: MilestoneDefinition
    current: int
    progress: float
    completed: bool

    def to_dict(self) -> dict:
        return {
            "id": self.milestone.id,
            "category": self.milestone.category.value,
            "title": self.milestone.title,
            "description": self.milestone.description,
            "target": self.milestone.target,
            "current": self.current,
            "progress": self.progress,
            "completed": self.completed,
        }


def milestone_progress(
    milestone: MilestoneDefinition, ctx: MilestoneContext
) -> MilestoneProgress:
    """Progress percentage is ``min(current / target, 1) × 100``."""
    current = CATEGORY_SOURCES[milestone.category](ctx)
    if milestone.target <= 0:
        ratio = 1.0
    else:
        ratio = min(current / milestone.target, 1.0)
    return MilestoneProgress(
        milestone=milestone,
        current=current,
        progress=round(max(ratio, 0.0) * 100, 1),
        completed=current >= milestone.target,
    )


def evaluate_milestones(
    ctx: MilestoneContext,
    milestones: Iterable[MilestoneDefinition] = DEFAULT_MILESTONES,
) -> list[MilestoneProgress]:
    """Evaluate every milestone in definition order."""
    return [milestone_progress(m, ctx) for m in milestones]
