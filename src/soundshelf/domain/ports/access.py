"""Access capability port.

An access capability is an opaque, renewable token that grants future read access to
a url outside the current process session. The DiscoverLog stores one per logged url.
"""

from abc import ABC, abstractmethod


class IAccessCapabilityProvider(ABC):
    """Issues and resolves access capabilities."""

    @abstractmethod
    def issue(self, url: str) -> bytes:
        """
        Create a capability for url.

        Raises:
            AccessCapabilityError: If access to url cannot be captured
        """
        ...

    @abstractmethod
    def resolve(self, capability: bytes) -> str:
        """
        Re-validate a capability and return the url it grants access to.

        Raises:
            AccessCapabilityError: If the capability expired or was revoked
        """
        ...
