"""Domain errors raised by taxonomy and product operations.

Every error carries the HTTP status the API layer maps it to.
"""


class TaxonomyError(Exception):
    """Base class for errors surfaced to callers of the SPM operations."""

    status_code: int = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(TaxonomyError):
    """Hierarchy rule violation, circular reference or malformed field."""

    status_code = 400


class NotFoundError(TaxonomyError):
    """Referenced record does not exist."""

    status_code = 404


class NoChangesError(TaxonomyError):
    """Update payload is identical to the current state."""

    status_code = 409

    def __init__(self, message: str = "No changes detected") -> None:
        super().__init__(message)


class AlreadyActiveError(TaxonomyError):
    """Reactivation requested for an active node."""

    status_code = 409

    def __init__(self, message: str = "Node is already active") -> None:
        super().__init__(message)


class AlreadyInactiveError(TaxonomyError):
    """Deactivation requested for an inactive node."""

    status_code = 409

    def __init__(self, message: str = "Node is already inactive") -> None:
        super().__init__(message)


class ParentInactiveError(TaxonomyError):
    """Reactivation blocked because the parent is inactive or missing."""

    status_code = 409

    def __init__(self, message: str = "Cannot reactivate node: parent is inactive") -> None:
        super().__init__(message)


class HasChildrenError(TaxonomyError):
    """Delete blocked by existing children without the force flag."""

    status_code = 409

    def __init__(
        self,
        message: str = "Cannot delete node with children. Use force_delete or move children first.",
    ) -> None:
        super().__init__(message)
