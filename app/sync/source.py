"""CIRRUS — Abstract Catalog Source."""

from abc import ABC, abstractmethod
from typing import List, Tuple

from app.models.catalog_models import PricingInfo, Service, Sku


class CatalogSource(ABC):
    """Supplies the provider catalog to the sync job.

    Implementations own transport and pagination; the job only sees complete
    lists per call.
    """

    @abstractmethod
    async def list_services(self) -> List[Service]:
        """Return every service in the catalog."""
        ...

    @abstractmethod
    async def list_skus(self, service_id: str) -> Tuple[List[Sku], List[PricingInfo]]:
        """Return the SKUs of ``service_id`` and all of their pricing snapshots."""
        ...
