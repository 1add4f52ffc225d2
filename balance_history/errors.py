"""
Error Taxonomy

Every failure the balance history layer can surface to a caller.

Validation and authorization errors are raised before any reconstruction
starts. Reconstruction itself only fails on malformed input (a bad anchor,
or a transaction handed to the wrong account); it never fails on values.
Overdrafts, empty histories and missing anchors are all valid.
"""


class BalanceHistoryError(Exception):
    """Base exception for balance history operations."""
    pass


class ValidationError(BalanceHistoryError):
    """The request itself is malformed (e.g. date range start after end)."""
    pass


class InvalidAnchorError(ValidationError):
    """An anchor carries an as-of date that is not a valid instant."""
    pass


class NotFoundError(BalanceHistoryError):
    """A referenced account does not exist."""
    pass


class UnauthorizedError(BalanceHistoryError):
    """The requester does not own the referenced account(s)."""
    pass


class InternalInvariantError(BalanceHistoryError):
    """
    A transaction was handed to the wrong account's reconstruction.

    Unreachable with a correct ledger query.
    """
    pass


class StorageError(BalanceHistoryError):
    """Base exception for collaborator (ledger / account store) failures."""
    pass


class StorageConnectionError(StorageError):
    """Transient failure talking to a collaborator. Safe to retry the fetch."""
    pass
