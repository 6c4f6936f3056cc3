"""Pure progression formulas — XP, combo multiplier, streak and level.

No I/O and no project imports. Both store adapters call these from inside
their atomic ``apply_reward`` so the numbers come from one place.

XP for a completed sprint::

    multiplier = 1 + floor(combo_max / 3) * 0.1
    base_xp    = questions_correct * 10
    combo_bonus = combo_max * 5
    xp_earned  = floor((base_xp + combo_bonus) * multiplier)

The multiplier is carried as an integer number of tenths so that the
floor is taken on the exact product (float 1.2 is slightly below 1.2).

Levels: reaching level ``n + 1`` from level ``n`` costs
``LEVEL_BASE_XP * LEVEL_GROWTH ** (n - 1)`` XP, rounded down. With the
defaults the cumulative thresholds are 0, 1000, 2500, 4750, 8125, ...
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta

XP_PER_CORRECT = 10
XP_PER_COMBO = 5
COMBO_STEP = 3

LEVEL_BASE_XP = 1000
LEVEL_GROWTH = 1.5


@dataclass(frozen=True)
class XpBreakdown:
    base_xp: int
    combo_bonus: int
    multiplier: float
    xp_earned: int


def _multiplier_tenths(combo_max: int) -> int:
    return 10 + combo_max // COMBO_STEP


def combo_multiplier(combo: int) -> float:
    """Returns ``1 + floor(combo / 3) * 0.1`` (3 → 1.1, 9 → 1.3)."""
    if combo < 0:
        raise ValueError(f"combo must be >= 0, got {combo}")
    return _multiplier_tenths(combo) / 10


def xp_for(questions_correct: int, combo_max: int) -> XpBreakdown:
    """Computes the XP earned for a completed sprint.

    Args:
        questions_correct: Number of correctly answered cards.
        combo_max: Longest run of consecutive correct answers.

    Returns:
        The full breakdown; ``xp_earned`` is the value to award.

    Raises:
        ValueError: If either input is negative.
    """
    if questions_correct < 0 or combo_max < 0:
        raise ValueError("questions_correct and combo_max must be >= 0")
    base_xp = questions_correct * XP_PER_CORRECT
    combo_bonus = combo_max * XP_PER_COMBO
    tenths = _multiplier_tenths(combo_max)
    return XpBreakdown(
        base_xp=base_xp,
        combo_bonus=combo_bonus,
        multiplier=tenths / 10,
        xp_earned=(base_xp + combo_bonus) * tenths // 10,
    )


def next_streak(streak_days: int, last_active: date | None, today: date) -> int:
    """Returns the streak after activity on ``today``.

    Yesterday continues the streak, today leaves it as is (at most one
    increment per day), anything else starts over at 1.
    """
    if last_active == today:
        return streak_days
    if last_active == today - timedelta(days=1):
        return streak_days + 1
    return 1


def _level_cost(level: int) -> int:
    return int(LEVEL_BASE_XP * LEVEL_GROWTH ** (level - 1))


def level_progress(xp: int) -> tuple[int, int, int]:
    """Returns ``(level, current_level_base_xp, next_level_xp)`` for ``xp``.

    Monotonic: more XP never yields a lower level.
    """
    if xp < 0:
        raise ValueError(f"xp must be >= 0, got {xp}")
    level = 1
    base = 0
    nxt = _level_cost(1)
    while xp >= nxt:
        level += 1
        base = nxt
        nxt = base + _level_cost(level)
    return level, base, nxt


def level_for_xp(xp: int) -> int:
    """The one canonical XP → level function."""
    return level_progress(xp)[0]
