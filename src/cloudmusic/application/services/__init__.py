"""Application services."""

from cloudmusic.application.services.catalog_reconciler import CatalogDiff, reconcile
from cloudmusic.application.services.provider_service import ProviderService
from cloudmusic.application.services.results import OperationResult
from cloudmusic.application.services.token_refresh import TokenRefreshCoordinator

__all__ = [
    "CatalogDiff",
    "OperationResult",
    "ProviderService",
    "TokenRefreshCoordinator",
    "reconcile",
]
