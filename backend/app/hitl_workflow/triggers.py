"""Review triggers — pure functions deciding where a classified item goes next.

No DB or service dependencies, easy to unit test.
"""

from app.exceptions import InvalidTransitionError
from app.models.cargo import MatchStatus

# Actions a reviewer can take, and the statuses each may start from
REVIEWABLE_STATUSES = {
    MatchStatus.AUTO_APPROVED,
    MatchStatus.REVIEW,
    MatchStatus.NO_MATCH,
}

ACTION_TARGETS = {
    "approve": MatchStatus.APPROVED,
    "reject": MatchStatus.REJECTED,
}


def classify_match(confidence: int, *, auto_approve_threshold: int = 90) -> tuple[MatchStatus, str]:
    """Map a match confidence to the post-matching status.

    Returns (status, reason).
    """
    if confidence >= auto_approve_threshold:
        return MatchStatus.AUTO_APPROVED, f"Confidence {confidence} >= {auto_approve_threshold}"
    if confidence > 0:
        return MatchStatus.REVIEW, f"Confidence {confidence} below {auto_approve_threshold}"
    return MatchStatus.NO_MATCH, "No catalog or history match"


def check_transition(current: MatchStatus, action: str) -> tuple[bool, str]:
    """Validate a reviewer action against the current status.

    Returns (apply, reason). ``apply`` is False when the item is already in the
    action's target state, so retries are no-ops. Raises InvalidTransitionError when the action
    is unknown or the transition is not allowed.
    """
    target = ACTION_TARGETS.get(action)
    if target is None:
        raise InvalidTransitionError(f"Invalid action: {action}. Must be approve or reject.")
    if current == target:
        return False, f"Already {target.value}"
    if current not in REVIEWABLE_STATUSES:
        raise InvalidTransitionError(f"Cannot {action} an item in status '{current.value}'")
    return True, f"{current.value} -> {target.value}"
