"""CIRRUS — Catalog Domain Models.

Values exchanged between the catalog source, the sync job and the repository.
Nested structures use the catalog API's camelCase names as aliases, which is
also how they are encoded into the store's blob columns.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

STATUS_SUCCESS = "SUCCESS"


class CatalogModel(BaseModel):
    """Base for catalog values: camelCase aliases, snake_case attributes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Service(CatalogModel):
    """A billable cloud service."""

    service_id: str
    display_name: str
    business_entity_name: str = ""


class Category(CatalogModel):
    """How a SKU is classified within its service."""

    service_display_name: str = ""
    resource_family: str = ""
    resource_group: str = ""
    usage_type: str = ""


class GeoTaxonomy(CatalogModel):
    """Geographic scope of a SKU (GLOBAL, REGIONAL, MULTI_REGIONAL, ...)."""

    type: str = ""
    regions: List[str] = Field(default_factory=list)


class Sku(CatalogModel):
    """A billable unit of a service."""

    sku_id: str
    service_id: str
    sku_name: str
    description: str
    category: Category = Field(default_factory=Category)
    service_regions: List[str] = Field(default_factory=list)
    geo_taxonomy: GeoTaxonomy = Field(default_factory=GeoTaxonomy)


class Money(CatalogModel):
    """An amount of money: whole ``units`` plus ``nanos`` (10^-9 units)."""

    currency_code: str = ""
    units: int = 0
    nanos: int = 0


class TieredRate(CatalogModel):
    """Unit price applying from ``start_usage_amount`` upwards."""

    start_usage_amount: float = 0.0
    unit_price: Money = Field(default_factory=Money)


class PricingInfo(CatalogModel):
    """One time-versioned pricing snapshot of a SKU."""

    pricing_info_id: Optional[int] = None
    sku_id: str
    effective_time: datetime
    summary: str = ""
    currency_code: str = ""
    usage_unit: str = ""
    usage_unit_description: str = ""
    display_quantity: int = 0
    tiered_rates: List[TieredRate] = Field(default_factory=list)


class PricingUpdate(CatalogModel):
    """Audit record summarizing one synchronization run."""

    update_id: Optional[int] = None
    update_time: datetime
    status: str
    services_updated: int = 0
    skus_updated: int = 0
    log_message: str = ""
