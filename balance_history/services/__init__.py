"""Services package."""

from balance_history.services.storage import (
    AccountStoreInterface,
    AuditStorageInterface,
    AuthorizerInterface,
    InMemoryAccountStore,
    InMemoryAuditStorage,
    InMemoryLedger,
    LedgerInterface,
    OwnerAuthorizer,
)

__all__ = [
    "AccountStoreInterface",
    "AuditStorageInterface",
    "AuthorizerInterface",
    "InMemoryAccountStore",
    "InMemoryAuditStorage",
    "InMemoryLedger",
    "LedgerInterface",
    "OwnerAuthorizer",
]
