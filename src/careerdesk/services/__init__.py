"""Business logic services."""

from careerdesk.services.cleanup_service import CleanupResult, CleanupService
from careerdesk.services.storage_adapter import JobAlreadySavedError, StorageAdapter

__all__ = ["CleanupResult", "CleanupService", "JobAlreadySavedError", "StorageAdapter"]
