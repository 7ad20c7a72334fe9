"""Exception types raised by the case engine.

Generation problems that can be tolerated (flavor text, portraits, audio)
are logged and swallowed where they happen. Only the failures below are
allowed to reach callers.
"""


class CaseError(Exception):
    """Base class for case engine errors."""


class LenientJsonError(CaseError):
    """Model output did not contain any parseable JSON of the expected kind."""

    def __init__(self, message: str, text: str = ""):
        super().__init__(message)
        self.excerpt = text[:500]


class StoryGenerationError(CaseError):
    """A structural invariant of the story could not be satisfied.

    Raised for a missing or ambiguous killer, an empty location list, or a
    stage whose output cannot be turned into domain objects at all.
    """


class CaseNotFoundError(CaseError):
    """No case with the given id exists in the store."""


class UnknownLocationError(CaseError):
    """The location id is not part of the case map."""


class UnknownSuspectError(CaseError):
    """The suspect name does not belong to the case."""


class VerdictAlreadySubmittedError(CaseError):
    """A final verdict was already recorded for the case."""


class CaseNotReadyError(CaseError):
    """The case exists but its story is still generating (or failed)."""
