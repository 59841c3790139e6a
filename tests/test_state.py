import pytest

from storypic.core.errors import SessionBusyError
from storypic.pipeline.orchestrator import UNEXPECTED_ERROR_MESSAGE
from storypic.pipeline.schema import Failure, FailureReason, Success
from storypic.session.state import (
    IDLE,
    FileRejected,
    InteractionState,
    Phase,
    Reset,
    RunResolved,
    RunStarted,
    transition,
)


def test_idle_identity():
    assert IDLE == InteractionState()
    assert IDLE.phase is Phase.IDLE
    assert (IDLE.image, IDLE.story, IDLE.error) == (None, None, None)


def test_run_started_sets_image_and_clears_outputs(png_payload):
    resolved = InteractionState(phase=Phase.RESOLVED, image=png_payload, error="old")
    state = transition(resolved, RunStarted(png_payload))

    assert state == InteractionState(phase=Phase.GENERATING, image=png_payload)
    assert not state.can_reset
    assert not state.can_select


def test_success_resolves_with_story(png_payload):
    state = transition(InteractionState(phase=Phase.GENERATING, image=png_payload), RunResolved(Success(story="Tale")))

    assert state.phase is Phase.RESOLVED
    assert state.story == "Tale"
    assert state.error is None
    assert state.image == png_payload
    assert state.can_download


def test_failure_message_shown_verbatim_for_empty_generation(png_payload):
    failure = Failure(reason=FailureReason.EMPTY_GENERATION, message="Try a different one.")
    state = transition(InteractionState(phase=Phase.GENERATING, image=png_payload), RunResolved(failure))

    assert state.error == "Try a different one."
    assert state.story is None


def test_unexpected_failure_never_leaks_detail(png_payload):
    failure = Failure(reason=FailureReason.UNEXPECTED_ERROR, message="Traceback: boom")
    state = transition(InteractionState(phase=Phase.GENERATING, image=png_payload), RunResolved(failure))

    assert state.error == UNEXPECTED_ERROR_MESSAGE


def test_rejected_file_stays_idle():
    state = transition(IDLE, FileRejected("Image size should be less than 4MB."))

    assert state.phase is Phase.IDLE
    assert state.image is None
    assert state.error == "Image size should be less than 4MB."


@pytest.mark.parametrize("event", [FileRejected("x"), Reset()])
def test_generating_only_leaves_by_resolution_or_reset(png_payload, event):
    generating = InteractionState(phase=Phase.GENERATING, image=png_payload)
    if isinstance(event, Reset):
        assert transition(generating, event) == IDLE
    else:
        with pytest.raises(SessionBusyError):
            transition(generating, event)


def test_second_start_while_generating_refused(png_payload):
    with pytest.raises(SessionBusyError):
        transition(InteractionState(phase=Phase.GENERATING, image=png_payload), RunStarted(png_payload))


def test_resolution_outside_generating_is_ignored(png_payload):
    assert transition(IDLE, RunResolved(Success(story="late"))) == IDLE


def test_reset_from_any_state_is_idle(png_payload):
    states = [
        IDLE,
        InteractionState(phase=Phase.IDLE, error="bad file"),
        InteractionState(phase=Phase.RESOLVED, image=png_payload, story="s"),
        InteractionState(phase=Phase.RESOLVED, image=png_payload, error="e"),
    ]
    for s in states:
        assert transition(s, Reset()) == IDLE
        assert transition(transition(s, Reset()), Reset()) == IDLE
