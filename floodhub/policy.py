# ================================
# FILE: floodhub/policy.py
# ================================
"""
Small, stateless rules shared by the routes: SOS priority scoring, the
rescue-request state machine and evacuation-center occupancy levels.
"""
from dataclasses import dataclass

BASE_SCORE = 50
QUICK_SOS_SCORE = 90
MAX_SCORE = 100

SEVERITY_BONUS = {"critical": 40, "high": 25}
DEFAULT_SEVERITY_BONUS = 10
HOUSEHOLD_BONUS_PER_PERSON = 3
HOUSEHOLD_BONUS_CAP = 15
SPECIAL_NEED_BONUS = 5

AMBIENT_BONUS = {"critical": 10, "warning": 5}

# lowest first; "none" means no active alert applies
ALERT_RANK = {"none": 0, "informational": 1, "warning": 2, "critical": 3}


def ambient_bonus(ambient_alert_priority: str | None) -> int:
    return AMBIENT_BONUS.get(ambient_alert_priority or "none", 0)


def priority_score(
    is_quick_sos: bool,
    severity: str,
    household_count: int,
    special_needs_count: int,
    ambient_alert_priority: str | None = "none",
) -> int:
    """Urgency score in [0, 100] used to order pending requests.

    A quick SOS skips the detailed questions, so it starts at 90 and only the
    ambient alert bonus applies on top.
    """
    if is_quick_sos:
        score = QUICK_SOS_SCORE
    else:
        score = BASE_SCORE
        score += SEVERITY_BONUS.get(severity, DEFAULT_SEVERITY_BONUS)
        score += min(household_count * HOUSEHOLD_BONUS_PER_PERSON, HOUSEHOLD_BONUS_CAP)
        score += special_needs_count * SPECIAL_NEED_BONUS

    score += ambient_bonus(ambient_alert_priority)
    return max(0, min(score, MAX_SCORE))


def highest_alert_priority(priorities) -> str:
    """Pick the most severe priority out of an iterable; 'none' when empty."""
    best = "none"
    for p in priorities:
        if ALERT_RANK.get(p, 0) > ALERT_RANK[best]:
            best = p
    return best


# --- Rescue request state machine ---

class InvalidTransition(Exception):
    def __init__(self, action: str, status: str):
        super().__init__(f"Cannot {action} a request that is {status}")
        self.action = action
        self.status = status


@dataclass(frozen=True)
class Transition:
    action: str
    sources: tuple[str, ...]
    target: str
    closes: bool = False  # sets completed_at


TRANSITIONS: dict[str, Transition] = {
    "claim":    Transition("claim", ("pending",), "assigned"),
    "assign":   Transition("assign", ("pending",), "assigned"),
    "start":    Transition("start", ("assigned",), "in_progress"),
    "complete": Transition("complete", ("in_progress",), "completed", closes=True),
    "cancel":   Transition("cancel", ("pending", "assigned"), "cancelled", closes=True),
}

ACTIVE_STATUSES = ("pending", "assigned", "in_progress")


def check_transition(action: str, status: str) -> Transition:
    t = TRANSITIONS.get(action)
    if t is None:
        raise ValueError(f"Unknown action {action!r}")
    if status not in t.sources:
        raise InvalidTransition(action, status)
    return t


# --- Evacuation center occupancy ---

FULL_PCT = 95
NEAR_CAPACITY_PCT = 80


def occupancy_pct(current: int, capacity: int) -> int:
    if capacity <= 0:
        return 100 if current > 0 else 0
    # round half up, not half to even
    return int(current * 100 / capacity + 0.5)


def occupancy_level(current: int, capacity: int) -> str:
    pct = occupancy_pct(current, capacity)
    if pct >= FULL_PCT:
        return "full"
    if pct >= NEAR_CAPACITY_PCT:
        return "near_capacity"
    return "available"


def available_spaces(current: int, capacity: int) -> int:
    return max(capacity - current, 0)


def clamp_occupancy(value: int) -> int:
    return max(0, value)
