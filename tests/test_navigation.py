import pytest

from cashsouk.workflow.navigation import (
    INVALID_STEP_NOTICE,
    OUT_OF_ORDER_NOTICE,
    STEP_ONE_NOTICE,
    evaluate_navigation,
    max_allowed_step,
)


@pytest.mark.parametrize("last_completed", [1, 2, 3, 7])
@pytest.mark.parametrize("offset", [2, 3, 10])
def test_skipping_ahead_redirects_to_next_step(last_completed, offset) -> None:
    requested = last_completed + offset

    decision = evaluate_navigation(requested, last_completed_step=last_completed)

    assert decision.redirected is True
    assert decision.step == last_completed + 1
    assert decision.notice == OUT_OF_ORDER_NOTICE


@pytest.mark.parametrize("last_completed", [1, 4, 9])
def test_step_one_always_redirects_to_step_two(last_completed) -> None:
    decision = evaluate_navigation(1, last_completed_step=last_completed)

    assert decision.step == 2
    assert decision.redirected is True
    assert decision.notice == STEP_ONE_NOTICE


def test_manual_url_past_watermark_lands_on_next_step() -> None:
    decision = evaluate_navigation(6, last_completed_step=3)

    assert decision.step == 4


def test_entry_without_step_resumes_at_max_allowed() -> None:
    decision = evaluate_navigation(None, last_completed_step=3)

    assert decision.step == 4
    assert decision.redirected is True
    assert decision.notice is None


def test_completed_steps_stay_viewable() -> None:
    for requested in range(2, 5):
        assert evaluate_navigation(requested, last_completed_step=3).redirected is False


def test_invalid_positions_redirect() -> None:
    decision = evaluate_navigation(0, last_completed_step=2)

    assert decision.step == 3
    assert decision.notice == INVALID_STEP_NOTICE


def test_exempt_step_bypasses_guard_once() -> None:
    decision = evaluate_navigation(5, last_completed_step=2, exempt_step=5)

    assert decision.step == 5
    assert decision.redirected is False


def test_max_allowed_step_is_at_least_two() -> None:
    assert max_allowed_step(0) == 2
    assert max_allowed_step(1) == 2
    assert max_allowed_step(5) == 6


def test_skipping_past_shortened_workflow_lands_on_last_step() -> None:
    decision = evaluate_navigation(9, last_completed_step=5, workflow_length=3)

    assert decision.step == 3
    assert decision.redirected is True
    assert decision.notice == OUT_OF_ORDER_NOTICE


def test_step_past_workflow_within_watermark_is_kept() -> None:
    decision = evaluate_navigation(5, last_completed_step=4, workflow_length=3)

    assert decision.step == 5
    assert decision.redirected is False


def test_clamp_never_goes_below_first_editable_step() -> None:
    decision = evaluate_navigation(7, last_completed_step=3, workflow_length=1)

    assert decision.step == 2
