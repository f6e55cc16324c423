"""CIRRUS — GCP Catalog Raw → Domain Transformer.

Converts Cloud Billing Catalog JSON (``services`` and ``skus`` resources) into
catalog domain models.
"""

from typing import Any, Dict, List, Tuple

from app.models.catalog_models import (
    Category,
    GeoTaxonomy,
    Money,
    PricingInfo,
    Service,
    Sku,
    TieredRate,
)

SERVICE_PREFIX = "services/"


def _safe_int(value: Any) -> int:
    """Int64 fields arrive as JSON strings."""
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _safe_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _strip_prefix(value: str, prefix: str) -> str:
    return value[len(prefix) :] if value.startswith(prefix) else value


def to_service(raw: Dict[str, Any]) -> Service:
    """Map a ``services`` resource; the id is the resource name without ``services/``."""
    return Service(
        service_id=_strip_prefix(raw.get("name", ""), SERVICE_PREFIX),
        display_name=raw.get("displayName", ""),
        business_entity_name=raw.get("businessEntityName", ""),
    )


def _to_tiered_rate(raw: Dict[str, Any]) -> TieredRate:
    price = raw.get("unitPrice") or {}
    return TieredRate(
        start_usage_amount=_safe_float(raw.get("startUsageAmount", 0)),
        unit_price=Money(
            currency_code=price.get("currencyCode", ""),
            units=_safe_int(price.get("units", 0)),
            nanos=_safe_int(price.get("nanos", 0)),
        ),
    )


def to_pricing_infos(raw_sku: Dict[str, Any], sku_id: str) -> List[PricingInfo]:
    """Map every ``pricingInfo`` entry of a SKU.

    The snapshot currency is taken from its first tiered rate.
    """
    prices: List[PricingInfo] = []
    for info in raw_sku.get("pricingInfo") or []:
        expression = info.get("pricingExpression") or {}
        rates = [_to_tiered_rate(r) for r in expression.get("tieredRates") or []]
        prices.append(
            PricingInfo(
                sku_id=sku_id,
                effective_time=info.get("effectiveTime") or "1970-01-01T00:00:00Z",
                summary=info.get("summary", ""),
                currency_code=rates[0].unit_price.currency_code if rates else "",
                usage_unit=expression.get("usageUnit", ""),
                usage_unit_description=expression.get("usageUnitDescription", ""),
                display_quantity=int(_safe_float(expression.get("displayQuantity", 0))),
                tiered_rates=rates,
            )
        )
    return prices


def to_sku(raw: Dict[str, Any], service_id: str) -> Tuple[Sku, List[PricingInfo]]:
    """Map a ``skus`` resource and its pricing snapshots."""
    sku_id = _strip_prefix(raw.get("name", ""), f"{SERVICE_PREFIX}{service_id}/skus/")
    geo = raw.get("geoTaxonomy") or {}
    sku = Sku(
        sku_id=sku_id,
        service_id=service_id,
        sku_name=raw.get("skuId", ""),
        description=raw.get("description", ""),
        category=Category.model_validate(raw.get("category") or {}),
        service_regions=list(raw.get("serviceRegions") or []),
        geo_taxonomy=GeoTaxonomy(
            type=geo.get("type", ""),
            regions=list(geo.get("regions") or []),
        ),
    )
    return sku, to_pricing_infos(raw, sku_id)
