"""Error types shared across primer components."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .generator import GenerationOutcome


class PrimerError(Exception):
    """Base class for errors primer reports to the user."""


class ValidationError(PrimerError):
    """Input was rejected before any side effect happened."""


class NotFoundError(PrimerError):
    """A repository path or remote repository does not exist."""


class AuthenticationError(PrimerError):
    """No usable credential for the hosting API."""


class HostingError(PrimerError):
    """The hosting API or git transport failed."""


class GenerationError(PrimerError):
    """One or more artifact kinds could not be written.

    Carries the partial outcome so callers can still report what was written.
    """

    def __init__(self, outcome: GenerationOutcome, failures: dict[str, str]):
        self.outcome = outcome
        self.failures = failures
        detail = "; ".join(f"{kind}: {msg}" for kind, msg in failures.items())
        super().__init__(f"Failed to write {len(failures)} artifact(s): {detail}")
