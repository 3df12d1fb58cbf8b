"""Exceptions raised by the warm transfer workflow and its collaborators."""


class WarmTransferError(Exception):
    """Base class for warm transfer errors."""


class InvalidArgumentError(WarmTransferError, ValueError):
    """A required transfer field is missing or empty."""


class InvalidStepTransition(WarmTransferError):
    """A step status change would break the monotonic step lifecycle."""


class CollaboratorError(WarmTransferError):
    """An external collaborator failed while a step was running."""


class GenerationError(CollaboratorError):
    """The summarizer could not produce the briefing text."""


class RoomError(CollaboratorError):
    """The media room service rejected or failed a request."""


class PlaybackError(CollaboratorError):
    """Speech synthesis or playback failed."""
