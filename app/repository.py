"""CIRRUS — Catalog Repository.

Idempotent writes for the catalog tables. Each call is its own short
transaction; a sync run that fails halfway keeps whatever was written before
the failure. Nested structures are stored as JSON blobs.
"""

from datetime import datetime, timezone
from typing import Any, List, Optional

from pydantic import TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError
from sqlalchemy import insert
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.exc import (
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)
from sqlmodel import Session, select

from app.core.exceptions import (
    ConstraintViolation,
    SerializationError,
    StoreError,
    StoreUnavailableError,
)
from app.core.logging import get_logger
from app.models.catalog_models import (
    Category,
    GeoTaxonomy,
    PricingInfo,
    PricingUpdate,
    Service,
    Sku,
    TieredRate,
)
from app.models.table_models import (
    PricingInfoRecord,
    PricingUpdateRecord,
    ServiceRecord,
    SkuRecord,
)

logger = get_logger("repository")

_CATEGORY = TypeAdapter(Category)
_REGIONS = TypeAdapter(List[str])
_GEO_TAXONOMY = TypeAdapter(GeoTaxonomy)
_TIERED_RATES = TypeAdapter(List[TieredRate])


def _to_utc(value: datetime) -> datetime:
    """Naive UTC, so one instant always maps to one stored key."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _encode(adapter: TypeAdapter, value: Any, field: str, details: dict) -> bytes:
    try:
        return adapter.dump_json(value, by_alias=True)
    except (PydanticSerializationError, TypeError, ValueError) as exc:
        raise SerializationError(
            f"cannot encode {field}: {exc}", details={**details, "field": field}
        ) from exc


def _decode(adapter: TypeAdapter, blob: Optional[bytes], default: Any) -> Any:
    if not blob:
        return default
    return adapter.validate_json(blob)


class CatalogRepository:
    """Conflict-resolving persistence for services, SKUs, pricing and audit rows."""

    def __init__(self, engine: Engine):
        self.engine = engine

    # ── Statement helpers ──

    def _insert(self, table):
        dialect = self.engine.dialect.name
        if dialect == "sqlite":
            return sqlite.insert(table)
        if dialect == "postgresql":
            return postgresql.insert(table)
        raise StoreError(f"upsert not supported for dialect {dialect!r}")

    def _write(self, statement, details: dict) -> Any:
        """Execute one statement in its own transaction, mapping store failures."""
        try:
            with self.engine.begin() as conn:
                return conn.execute(statement)
        except IntegrityError as exc:
            raise ConstraintViolation(
                f"constraint violated writing {details}: {exc.orig}", details=details
            ) from exc
        except (OperationalError, InterfaceError) as exc:
            raise StoreUnavailableError(
                f"store unavailable writing {details}: {exc.orig}", details=details
            ) from exc
        except SQLAlchemyError as exc:
            raise StoreError(f"store error writing {details}: {exc}", details=details) from exc

    # ── Upserts ──

    def upsert_service(self, service: Service) -> None:
        """Insert a service or overwrite its names."""
        stmt = self._insert(ServiceRecord).values(
            service_id=service.service_id,
            display_name=service.display_name,
            business_entity_name=service.business_entity_name,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["service_id"],
            set_={
                "display_name": stmt.excluded.display_name,
                "business_entity_name": stmt.excluded.business_entity_name,
            },
        )
        self._write(stmt, {"entity": "service", "service_id": service.service_id})

    def upsert_sku(self, sku: Sku) -> None:
        """Insert a SKU or overwrite every mutable field, blobs included."""
        details = {"entity": "sku", "sku_id": sku.sku_id}
        stmt = self._insert(SkuRecord).values(
            sku_id=sku.sku_id,
            service_id=sku.service_id,
            sku_name=sku.sku_name,
            description=sku.description,
            category=_encode(_CATEGORY, sku.category, "category", details),
            service_regions=_encode(_REGIONS, sku.service_regions, "service_regions", details),
            geo_taxonomy=_encode(_GEO_TAXONOMY, sku.geo_taxonomy, "geo_taxonomy", details),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["sku_id"],
            set_={
                "service_id": stmt.excluded.service_id,
                "sku_name": stmt.excluded.sku_name,
                "description": stmt.excluded.description,
                "category": stmt.excluded.category,
                "service_regions": stmt.excluded.service_regions,
                "geo_taxonomy": stmt.excluded.geo_taxonomy,
            },
        )
        self._write(stmt, details)

    def upsert_pricing_info(self, pricing: PricingInfo) -> None:
        """Insert a pricing snapshot or overwrite the one with the same (sku_id, effective_time)."""
        effective_time = _to_utc(pricing.effective_time)
        details = {
            "entity": "pricing_info",
            "sku_id": pricing.sku_id,
            "effective_time": effective_time.isoformat(),
        }
        stmt = self._insert(PricingInfoRecord).values(
            sku_id=pricing.sku_id,
            effective_time=effective_time,
            summary=pricing.summary,
            currency_code=pricing.currency_code,
            usage_unit=pricing.usage_unit,
            usage_unit_description=pricing.usage_unit_description,
            display_quantity=pricing.display_quantity,
            tiered_rates=_encode(_TIERED_RATES, pricing.tiered_rates, "tiered_rates", details),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["sku_id", "effective_time"],
            set_={
                "summary": stmt.excluded.summary,
                "currency_code": stmt.excluded.currency_code,
                "usage_unit": stmt.excluded.usage_unit,
                "usage_unit_description": stmt.excluded.usage_unit_description,
                "display_quantity": stmt.excluded.display_quantity,
                "tiered_rates": stmt.excluded.tiered_rates,
            },
        )
        self._write(stmt, details)

    def insert_pricing_update(self, update: PricingUpdate) -> int:
        """Append an audit row and return its update_id."""
        stmt = insert(PricingUpdateRecord).values(
            update_time=_to_utc(update.update_time),
            status=update.status,
            services_updated=update.services_updated,
            skus_updated=update.skus_updated,
            log_message=update.log_message,
        )
        result = self._write(stmt, {"entity": "pricing_update", "status": update.status})
        return result.inserted_primary_key[0]

    # ── Reads ──

    def _read(self, query, details: dict) -> List[Any]:
        try:
            with Session(self.engine) as session:
                return list(session.exec(query).all())
        except (OperationalError, InterfaceError) as exc:
            raise StoreUnavailableError(
                f"store unavailable reading {details}: {exc.orig}", details=details
            ) from exc
        except SQLAlchemyError as exc:
            raise StoreError(f"store error reading {details}: {exc}", details=details) from exc

    def get_service(self, service_id: str) -> Optional[Service]:
        rows = self._read(
            select(ServiceRecord).where(ServiceRecord.service_id == service_id),
            {"entity": "service", "service_id": service_id},
        )
        if not rows:
            return None
        row = rows[0]
        return Service(
            service_id=row.service_id,
            display_name=row.display_name,
            business_entity_name=row.business_entity_name or "",
        )

    def get_sku(self, sku_id: str) -> Optional[Sku]:
        """Load a SKU with its nested structures decoded."""
        details = {"entity": "sku", "sku_id": sku_id}
        rows = self._read(select(SkuRecord).where(SkuRecord.sku_id == sku_id), details)
        if not rows:
            return None
        row = rows[0]
        try:
            return Sku(
                sku_id=row.sku_id,
                service_id=row.service_id,
                sku_name=row.sku_name,
                description=row.description,
                category=_decode(_CATEGORY, row.category, Category()),
                service_regions=_decode(_REGIONS, row.service_regions, []),
                geo_taxonomy=_decode(_GEO_TAXONOMY, row.geo_taxonomy, GeoTaxonomy()),
            )
        except ValidationError as exc:
            raise SerializationError(f"cannot decode sku {sku_id}: {exc}", details=details) from exc

    def list_pricing_info(self, sku_id: str) -> List[PricingInfo]:
        """Pricing snapshots of a SKU, oldest first."""
        details = {"entity": "pricing_info", "sku_id": sku_id}
        rows = self._read(
            select(PricingInfoRecord)
            .where(PricingInfoRecord.sku_id == sku_id)
            .order_by(PricingInfoRecord.effective_time),
            details,
        )
        try:
            return [
                PricingInfo(
                    pricing_info_id=row.pricing_info_id,
                    sku_id=row.sku_id,
                    effective_time=row.effective_time.replace(tzinfo=timezone.utc),
                    summary=row.summary or "",
                    currency_code=row.currency_code or "",
                    usage_unit=row.usage_unit or "",
                    usage_unit_description=row.usage_unit_description or "",
                    display_quantity=row.display_quantity or 0,
                    tiered_rates=_decode(_TIERED_RATES, row.tiered_rates, []),
                )
                for row in rows
            ]
        except ValidationError as exc:
            raise SerializationError(
                f"cannot decode pricing for {sku_id}: {exc}", details=details
            ) from exc

    def list_pricing_updates(self, limit: int = 20) -> List[PricingUpdate]:
        """Most recent audit rows first."""
        rows = self._read(
            select(PricingUpdateRecord)
            .order_by(PricingUpdateRecord.update_id.desc())  # type: ignore
            .limit(limit),
            {"entity": "pricing_update"},
        )
        return [
            PricingUpdate(
                update_id=row.update_id,
                update_time=row.update_time.replace(tzinfo=timezone.utc),
                status=row.status,
                services_updated=row.services_updated,
                skus_updated=row.skus_updated,
                log_message=row.log_message or "",
            )
            for row in rows
        ]
