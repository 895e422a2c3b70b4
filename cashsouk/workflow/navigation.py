"""Guard that decides whether a requested step position may be viewed."""

from __future__ import annotations

from dataclasses import dataclass

FIRST_EDITABLE_STEP = 2

STEP_ONE_NOTICE = "Step 1 can only be changed by starting a new application"
OUT_OF_ORDER_NOTICE = "Please complete steps in order"
INVALID_STEP_NOTICE = "Invalid step number"


@dataclass(frozen=True)
class NavigationDecision:
    step: int
    redirected: bool = False
    notice: str | None = None


def max_allowed_step(last_completed_step: int) -> int:
    return max((last_completed_step or 1) + 1, FIRST_EDITABLE_STEP)


def evaluate_navigation(
    requested: int | None,
    *,
    last_completed_step: int,
    workflow_length: int | None = None,
    exempt_step: int | None = None,
) -> NavigationDecision:
    """Apply the ordering rules to a requested 1-based step position.

    ``None`` means the edit flow was entered without a step; the issuer resumes
    at the furthest step they may view. ``exempt_step`` is the target of the
    host's own save navigation and bypasses the rules once.

    A position past the end of a product edited down stays viewable while it is
    within the issuer's own watermark; the host renders it as unmapped. Skipping
    ahead beyond the watermark lands on the last step the workflow still has.
    """
    max_allowed = max_allowed_step(last_completed_step)
    if requested is None:
        return NavigationDecision(max_allowed, redirected=True)
    if exempt_step is not None and requested == exempt_step:
        return NavigationDecision(requested)
    if requested == 1:
        return NavigationDecision(FIRST_EDITABLE_STEP, redirected=True, notice=STEP_ONE_NOTICE)
    if requested < 1:
        return NavigationDecision(max_allowed, redirected=True, notice=INVALID_STEP_NOTICE)
    if requested > max_allowed:
        target = max_allowed
        if workflow_length:
            target = max(min(max_allowed, workflow_length), FIRST_EDITABLE_STEP)
        return NavigationDecision(target, redirected=True, notice=OUT_OF_ORDER_NOTICE)
    return NavigationDecision(requested)
