"""
Storage Services Package

Abstract collaborator interfaces and in-memory implementations.
Host applications plug their own ledger, account store and authorizer in
behind the same interfaces.
"""

from balance_history.services.storage.interface import (
    AccountStoreInterface,
    AuditStorageInterface,
    AuthorizerInterface,
    LedgerInterface,
)
from balance_history.services.storage.memory import (
    InMemoryAccountStore,
    InMemoryAuditStorage,
    InMemoryLedger,
    OwnerAuthorizer,
)

__all__ = [
    # Interfaces
    "AccountStoreInterface",
    "AuditStorageInterface",
    "AuthorizerInterface",
    "LedgerInterface",
    # In-memory implementation
    "InMemoryAccountStore",
    "InMemoryAuditStorage",
    "InMemoryLedger",
    "OwnerAuthorizer",
]
