"""Storage layer for the persisted event cache."""

from zkpool.storage.database import (
    DatabaseManager,
    DepositEventRecord,
    SqlEventCacheStore,
    Base,
    get_db_manager,
    reset_db_manager,
)

__all__ = [
    "DatabaseManager",
    "DepositEventRecord",
    "SqlEventCacheStore",
    "Base",
    "get_db_manager",
    "reset_db_manager",
]
