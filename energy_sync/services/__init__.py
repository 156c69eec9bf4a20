from .sync_service import SyncService, create_sync_service

__all__ = ["SyncService", "create_sync_service"]
