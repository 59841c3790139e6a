"""
Purpose:
- Exception types shared by the payload, session and API layers.
- Capability backends raise whatever their client raises; the pipeline is the catch boundary.
"""

class StoryPicError(Exception):
    """Base class for errors raised by this package."""


class ImageRejectedError(StoryPicError):
    """The selected image failed validation. The message is safe to show to the user."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class SessionBusyError(StoryPicError):
    """A run is outstanding; selecting or resetting is not available until it resolves."""

    def __init__(self, message: str = "A story is still being generated."):
        super().__init__(message)
        self.message = message
