from __future__ import annotations


class ControllerError(Exception):
    """Base class for everything the controller raises on purpose."""


class StoreError(ControllerError):
    """A resource-store call failed. Never retried inside a reconcile pass."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(StoreError):
    pass


class AlreadyExistsError(StoreError):
    pass


class ConflictError(StoreError):
    """The write carried a stale resourceVersion."""


class OwnershipLinkError(ControllerError):
    """The child could not be stamped with its controller reference."""


class PartialStatusError(ControllerError):
    """A child could not be re-read, so the parent status was not written."""


class InvalidResourceError(ControllerError):
    """The stored parent does not match the declared schema."""
