"""
Purpose:
- The single session state value and its reducer.
- transition(state, event) -> new state; the controller is the only caller.

States:
- IDLE        : nothing selected (may carry an error from a rejected file)
- GENERATING  : image set, story/error unset, run outstanding
- RESOLVED    : image set, exactly one of story/error set
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from ..core.errors import SessionBusyError
from ..pipeline.orchestrator import UNEXPECTED_ERROR_MESSAGE
from ..pipeline.schema import Failure, FailureReason, Success
from ..vlm.payload import ImagePayload

class Phase(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    RESOLVED = "resolved"

@dataclass(frozen=True)
class InteractionState:
    phase: Phase = Phase.IDLE
    image: Optional[ImagePayload] = None
    story: Optional[str] = None
    error: Optional[str] = None

    @property
    def can_select(self) -> bool:
        return self.phase is not Phase.GENERATING

    @property
    def can_reset(self) -> bool:
        return self.phase is not Phase.GENERATING

    @property
    def can_download(self) -> bool:
        return self.story is not None

IDLE = InteractionState()

# --- Events ------------------------------------------------------------------

@dataclass(frozen=True)
class FileRejected:
    message: str

@dataclass(frozen=True)
class RunStarted:
    image: ImagePayload

@dataclass(frozen=True)
class RunResolved:
    result: Union[Success, Failure]

@dataclass(frozen=True)
class Reset:
    pass

Event = Union[FileRejected, RunStarted, RunResolved, Reset]

def display_error(failure: Failure) -> str:
    """User-facing text for a failure; internal detail never reaches the UI."""
    if failure.reason is FailureReason.UNEXPECTED_ERROR:
        return UNEXPECTED_ERROR_MESSAGE
    return failure.message or UNEXPECTED_ERROR_MESSAGE

def transition(state: InteractionState, event: Event) -> InteractionState:
    if isinstance(event, Reset):
        return IDLE

    if isinstance(event, RunResolved):
        if state.phase is not Phase.GENERATING:
            return state
        result = event.result
        if isinstance(result, Success):
            return InteractionState(phase=Phase.RESOLVED, image=state.image, story=result.story)
        return InteractionState(phase=Phase.RESOLVED, image=state.image, error=display_error(result))

    if state.phase is Phase.GENERATING:
        raise SessionBusyError()

    if isinstance(event, FileRejected):
        return InteractionState(phase=Phase.IDLE, error=event.message)
    if isinstance(event, RunStarted):
        return InteractionState(phase=Phase.GENERATING, image=event.image)

    raise TypeError(f"unknown session event: {event!r}")
