"""Exception hierarchy shared by the manager and the control surface."""

from __future__ import annotations


class RelayError(Exception):
    """Base error for sessionrelay operations."""


class SessionNotReady(RelayError):
    """Raised when an outbound send is attempted outside the READY state."""


class SendFailed(RelayError):
    """Raised when the session client fails to deliver an outbound message."""


class ClientFactoryError(RelayError):
    """Raised when the configured session client factory cannot be loaded."""
