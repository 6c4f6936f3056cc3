"""Stats transition applied inside a store's atomic ``apply_reward``.

Kept separate from the stores so the in-memory stub and the SQL adapter
compute exactly the same next state.
"""

from __future__ import annotations

from datetime import date

from codesprint.progression.formulas import level_for_xp, next_streak
from codesprint.schemas import RewardResult, UserStats


def advance_stats(
    stats: UserStats,
    *,
    xp_delta: int,
    today: date,
    counts_as_sprint: bool,
) -> tuple[UserStats, RewardResult]:
    """Returns the next stats row and the reward summary.

    XP only grows, the level is recomputed from the new total, and the
    streak follows ``next_streak``.
    """
    if xp_delta < 0:
        raise ValueError(f"xp_delta must be >= 0, got {xp_delta}")
    new_xp = stats.xp + xp_delta
    new_streak = next_streak(stats.streak_days, stats.last_active_date, today)
    updated = stats.model_copy(
        update={
            "xp": new_xp,
            "level": level_for_xp(new_xp),
            "streak_days": new_streak,
            "last_active_date": today,
            "total_sprints_completed": stats.total_sprints_completed
            + (1 if counts_as_sprint else 0),
        }
    )
    result = RewardResult(
        xp_earned=xp_delta,
        new_xp=updated.xp,
        new_streak=updated.streak_days,
        new_level=updated.level,
    )
    return updated, result
