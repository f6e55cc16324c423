"""CIRRUS — Table Mappings.

The schema itself is owned by the SQL migration units; these SQLModel tables
mirror it so the repository can build dialect-aware statements. Blob columns
hold the JSON encoding of the nested catalog models.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel, UniqueConstraint


class ServiceRecord(SQLModel, table=True):
    """Row of ``services``."""

    __tablename__ = "services"

    service_id: str = Field(primary_key=True)
    display_name: str
    business_entity_name: Optional[str] = None


class SkuRecord(SQLModel, table=True):
    """Row of ``skus``; references ``services``."""

    __tablename__ = "skus"

    sku_id: str = Field(primary_key=True)
    service_id: str = Field(foreign_key="services.service_id", index=True)
    sku_name: str
    description: str
    category: Optional[bytes] = None
    service_regions: Optional[bytes] = None
    geo_taxonomy: Optional[bytes] = None


class PricingInfoRecord(SQLModel, table=True):
    """Row of ``pricing_info``; one per (sku_id, effective_time)."""

    __tablename__ = "pricing_info"
    __table_args__ = (
        UniqueConstraint("sku_id", "effective_time", name="uq_pricing_info_sku_time"),
    )

    pricing_info_id: Optional[int] = Field(default=None, primary_key=True)
    sku_id: str = Field(foreign_key="skus.sku_id", index=True)
    effective_time: datetime = Field(sa_type=DateTime())  # naive UTC, as TIMESTAMP
    summary: Optional[str] = None
    currency_code: Optional[str] = None
    usage_unit: Optional[str] = None
    usage_unit_description: Optional[str] = None
    display_quantity: Optional[int] = None
    tiered_rates: Optional[bytes] = None


class PricingUpdateRecord(SQLModel, table=True):
    """Append-only audit row of ``pricing_updates``.

    Never modify this data — it's the audit trail.
    """

    __tablename__ = "pricing_updates"

    update_id: Optional[int] = Field(default=None, primary_key=True)
    update_time: datetime = Field(sa_type=DateTime())  # naive UTC, as TIMESTAMP
    status: str
    services_updated: int = 0
    skus_updated: int = 0
    log_message: Optional[str] = None


class SchemaMigrationRecord(SQLModel, table=True):
    """One row per fully applied migration unit."""

    __tablename__ = "schema_migrations"

    version: str = Field(primary_key=True)
    applied_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc).replace(tzinfo=None),
        sa_type=DateTime(),
    )
