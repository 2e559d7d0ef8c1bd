"""Protocol definitions for the wallet pass core.

The core never talks to storage or to a web framework directly; callers
plug in implementations of these protocols.
"""

from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from wallet.results import PassOutcome
    from wallet.schemas import PassVisualSettings, TicketPassData


class MediaStore(Protocol):
    """Lookup for images uploaded through the admin media library."""

    def get_image(self, key: str) -> bytes | str | None:
        """Return the stored image for a media key.

        Args:
            key: The media key (the part after ``/api/media/``).

        Returns:
            Raw image bytes, a base64 data URI string, or None if not found.
        """
        ...


@runtime_checkable
class WalletPassGenerator(Protocol):
    """Protocol for wallet pass generators.

    Implementations turn a batch of tickets from one order into a
    provider-specific artifact (an archive for Apple, a save URL for Google).
    """

    def generate(
        self,
        tickets: Sequence["TicketPassData"],
        pass_settings: "PassVisualSettings",
    ) -> "PassOutcome":
        """Generate the provider artifact for the given tickets.

        Args:
            tickets: Tickets of a single order.
            pass_settings: Tenant pass customization.

        Returns:
            The outcome, carrying the artifact on success.
        """
        ...

    def is_configured(self, pass_settings: "PassVisualSettings") -> bool:
        """Check whether the provider credentials are present (no I/O).

        Args:
            pass_settings: Tenant pass customization (may carry identifiers).

        Returns:
            True if every required credential field is set.
        """
        ...
