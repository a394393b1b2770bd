"""Exception taxonomy shared by the gate, the router and the store."""

from __future__ import annotations


class VipAutoError(Exception):
    """Base class for every error raised by this package."""


class AuthenticationFailure(VipAutoError):
    """Bad credential at login or on the realtime channel."""


class AuthorizationDenied(VipAutoError):
    """Valid identity, insufficient privilege.

    Most commands drop the request silently; ``notify`` marks the denials
    that must be reported back to the caller.
    """

    def __init__(self, message: str = "Permission denied", notify: bool = False) -> None:
        super().__init__(message)
        self.notify = notify


class ValidationFailure(VipAutoError):
    """A required payload field is missing or malformed."""


class PersistenceFailure(VipAutoError):
    """A store operation raised; the transaction was rolled back."""


# ── User-facing messages ─────────────────────────────────
SAVE_FAILED_MESSAGE = "Failed to save data. Please try again."
ADD_ORDER_FAILED_MESSAGE = "Could not create the work order."
ORDER_EDIT_DENIED_MESSAGE = "You are not allowed to edit this order."
