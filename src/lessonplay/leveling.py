"""
XP leveling curve.

Level N needs `LEVEL_BASE_XP * LEVEL_GROWTH_RATE ** (N - 1)` XP, rounded to
the nearest `LEVEL_ROUNDING_STEP` and never below the base requirement.
"""

import math
from typing import Any, Dict, Tuple

from .config import settings


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def xp_requirement(level: int) -> int:
    level = max(1, int(level))
    scaled = settings.LEVEL_BASE_XP * settings.LEVEL_GROWTH_RATE ** (level - 1)
    step = settings.LEVEL_ROUNDING_STEP
    return max(settings.LEVEL_BASE_XP, _round_half_up(scaled / step) * step)


def total_xp_before(level: int) -> int:
    return sum(xp_requirement(n) for n in range(1, max(1, int(level))))


def resolve_level(total_xp: int) -> Tuple[int, int]:
    """Return (level, xp accumulated before that level) for a lifetime XP total."""
    total_xp = max(0, int(total_xp))
    level, before = 1, 0
    while total_xp >= before + xp_requirement(level):
        before += xp_requirement(level)
        level += 1
    return level, before


def xp_progress(total_xp: int) -> Dict[str, Any]:
    level, before = resolve_level(total_xp)
    requirement = xp_requirement(level)
    within = max(0, int(total_xp) - before)
    return {
        "level": level,
        "requirement": requirement,
        "accumulated_before": before,
        "within_level": within,
        "percent": _round_half_up(100 * within / requirement),
        "to_next": requirement - within,
    }
