"""
errors.py

Exception taxonomy for the screenplay ingestion pipeline.

Every error raised by scriptcue derives from ScriptCueError so that the job
runner can record a human-readable message in the status record before the
error propagates.
"""
from __future__ import annotations

from typing import Optional


class ScriptCueError(Exception):
    """Base class for all pipeline errors."""


# --- input ---------------------------------------------------------------

class InputError(ScriptCueError):
    """Input text or parameters cannot be processed."""


class EmptyInputError(InputError):
    pass


class UnreadableTextError(InputError):
    pass


class InvalidVoiceError(InputError):
    pass


# --- classifier output ---------------------------------------------------

class ClassificationError(ScriptCueError):
    """An external classifier returned output we refuse to coerce."""


class ClassificationFormatError(ClassificationError):
    pass


class ClassificationRangeError(ClassificationError):
    pass


# --- merge invariants ----------------------------------------------------

class MergeInvariantError(ScriptCueError):
    """The incrementally merged document is no longer trustworthy."""


class NonSequentialDialogueError(MergeInvariantError):
    pass


class DuplicateActionLineError(MergeInvariantError):
    pass


class NonSequentialActionLineError(MergeInvariantError):
    pass


# --- external services ---------------------------------------------------

class ExternalServiceError(ScriptCueError):
    """
    A collaborator call failed.

    `retryable` tells the retry policy whether another attempt can help.
    """

    retryable = True

    def __init__(self, message: str, *, service: Optional[str] = None):
        super().__init__(message)
        self.service = service


class RateLimitedError(ExternalServiceError):
    retryable = True


class ServiceUnavailableError(ExternalServiceError):
    retryable = True


class AuthenticationFailedError(ExternalServiceError):
    retryable = False


class QuotaExceededError(ExternalServiceError):
    retryable = False


class RequestRejectedError(ExternalServiceError):
    """The service refused the request itself (unknown model, bad input)."""

    retryable = False


# --- job level -----------------------------------------------------------

class NoCharactersDetectedError(ScriptCueError):
    pass


class NoVoiceLinesGeneratedError(ScriptCueError):
    pass


class InvalidStatusTransitionError(ScriptCueError):
    pass
