"""Result types for wallet pass generation.

Generation is a best-effort layer on top of already-issued tickets, so
entry points report "not configured" and "failed" as values instead of
raising into the ticket issuance flow.
"""

import enum
import typing as t
from dataclasses import dataclass

APPLE_PASS_CONTENT_TYPE = "application/vnd.apple.pkpass"
APPLE_BUNDLE_CONTENT_TYPE = "application/vnd.apple.pkpasses"

T = t.TypeVar("T")


class PassStatus(enum.StrEnum):
    """Outcome of a pass generation attempt."""

    OK = "ok"
    UNAVAILABLE = "unavailable"  # provider not configured
    FAILED = "failed"  # malformed credentials, signing error, bad input


@dataclass(frozen=True)
class PassOutcome(t.Generic[T]):
    """A generated artifact, or the reason there is none."""

    status: PassStatus
    artifact: T | None = None
    reason: str | None = None

    @classmethod
    def ok(cls, artifact: T) -> "PassOutcome[T]":
        return cls(status=PassStatus.OK, artifact=artifact)

    @classmethod
    def unavailable(cls, reason: str) -> "PassOutcome[T]":
        return cls(status=PassStatus.UNAVAILABLE, reason=reason)

    @classmethod
    def failed(cls, reason: str) -> "PassOutcome[T]":
        return cls(status=PassStatus.FAILED, reason=reason)

    @property
    def is_ok(self) -> bool:
        return self.status is PassStatus.OK

    def unwrap_or_none(self) -> T | None:
        """Return the artifact, or None for any non-OK outcome."""
        return self.artifact if self.is_ok else None


@dataclass(frozen=True)
class ApplePassBundle:
    """A downloadable Apple Wallet file (single pass or multi-pass bundle)."""

    buffer: bytes
    content_type: str
    filename: str
