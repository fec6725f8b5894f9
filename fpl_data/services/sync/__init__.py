"""
FPL Data Sync Service

Replaces the local cache with a full remote snapshot on every refresh.

Key components:
- Synchronizer: fetch, delete-all, insert-all in one transaction
- SyncStatus: in-memory bookkeeping of refresh runs
"""
from fpl_data.services.sync.synchronizer import Synchronizer, SyncStatus

__all__ = ["Synchronizer", "SyncStatus"]
