"""Exception hierarchy for the enrollment core.

Only ``FormValidationError`` and ``PersistenceError`` abort a submit. Link
errors are absorbed by the linking orchestrator and turned into notices.
"""


class EnrollmentError(Exception):
    """Base class for all enrollment errors."""


class FormValidationError(EnrollmentError):
    """Required field missing or malformed. Carries a field -> message map."""

    def __init__(self, errors: dict[str, str]):
        self.errors = dict(errors)
        super().__init__("; ".join(f"{field}: {msg}" for field, msg in self.errors.items()))


class PersistenceError(EnrollmentError):
    """Insert or update of a roster record failed."""


class InvalidTransitionError(EnrollmentError):
    """Event is not allowed in the session's current phase or mode."""


class SessionClosedError(InvalidTransitionError):
    """Event received after the session was submitted or cancelled."""


class LinkError(EnrollmentError):
    """Linking a roster record to an account failed."""


class AccountNotFoundError(LinkError):
    """No account is registered for the given email."""


class RosterNotFoundError(LinkError):
    """The roster record does not exist on the given team."""


class DirectoryUnavailableError(LinkError):
    """The account directory could not be reached or refused the request."""
