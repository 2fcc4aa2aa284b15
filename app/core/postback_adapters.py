"""
Postback payload adapters: vendor JSON -> ConversionPayload.

Affiliate networks each send their own schema-less JSON. Every vendor gets a
mapping function that either returns a typed ConversionPayload or raises
PayloadError; handlers never read raw payload fields themselves.

Daraz:
  subid1      → our click tracking id
  subid2      → product offer id (fallback when the click is unknown)
  sku         → vendor product id (second fallback)
  order_id, commission, currency, status

Generic (any other vendor with a configured secret):
  click_id | subid1, order_id, commission, currency, status,
  offer_id, vendor_product_id
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Callable

from app.core.errors import PayloadError
from app.models.tables import INT4_MAX


@dataclass(frozen=True)
class ConversionPayload:
    vendor_name: str
    order_id: str
    commission_cents: int
    currency: str
    status: str
    click_ref: str | None = None
    offer_id: int | None = None
    vendor_product_id: str | None = None


Adapter = Callable[[dict[str, Any], str, str], ConversionPayload]

DARAZ_STATUS_MAP = {
    "pending": "pending",
    "unpaid": "pending",
    "processing": "pending",
    "shipped": "pending",
    "delivered": "approved",
    "approved": "approved",
    "confirmed": "approved",
    "paid": "approved",
    "canceled": "rejected",
    "cancelled": "rejected",
    "returned": "rejected",
    "rejected": "rejected",
    "failed": "rejected",
}


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------

def _text(payload: dict, *keys: str) -> str | None:
    """First non-empty value among `keys`, stringified and stripped."""
    for key in keys:
        value = payload.get(key)
        if value is None or isinstance(value, (dict, list, bool)):
            continue
        value = str(value).strip()
        if value:
            return value
    return None


def money_to_cents(amount: Any) -> int:
    """Convert '120.50' / 120.5 / 120 to integer cents 12050 (half-up)."""
    if amount is None or isinstance(amount, bool) or amount == "":
        raise PayloadError("Missing commission")
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation:
        raise PayloadError("Invalid commission")
    if not value.is_finite():
        raise PayloadError("Invalid commission")
    try:
        cents = int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except InvalidOperation:
        raise PayloadError("Invalid commission")
    if abs(cents) > INT4_MAX:
        raise PayloadError("Invalid commission")
    return cents


def _optional_int(value: str | None, field: str) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        raise PayloadError(f"Invalid {field}")


def _currency(value: str | None, default: str) -> str:
    currency = (value or default).upper()
    if len(currency) != 3 or not currency.isalpha():
        raise PayloadError("Invalid currency")
    return currency


def _required(payload: dict, field: str, *keys: str) -> str:
    value = _text(payload, *(keys or (field,)))
    if value is None:
        raise PayloadError(f"Missing {field}")
    return value


# ---------------------------------------------------------------------------
# Adapters
# ---------------------------------------------------------------------------

def parse_daraz(payload: dict[str, Any], vendor: str, default_currency: str) -> ConversionPayload:
    raw_status = _required(payload, "status").lower()
    return ConversionPayload(
        vendor_name="Daraz",
        order_id=_required(payload, "order_id"),
        commission_cents=money_to_cents(payload.get("commission")),
        currency=_currency(_text(payload, "currency"), default_currency),
        status=DARAZ_STATUS_MAP.get(raw_status, raw_status)[:50],
        click_ref=_text(payload, "subid1"),
        offer_id=_optional_int(_text(payload, "subid2", "offer_id"), "offer_id"),
        vendor_product_id=_text(payload, "sku"),
    )


def parse_generic(payload: dict[str, Any], vendor: str, default_currency: str) -> ConversionPayload:
    return ConversionPayload(
        vendor_name=vendor,
        order_id=_required(payload, "order_id"),
        commission_cents=money_to_cents(payload.get("commission")),
        currency=_currency(_text(payload, "currency"), default_currency),
        status=_required(payload, "status").lower()[:50],
        click_ref=_text(payload, "click_id", "subid1"),
        offer_id=_optional_int(_text(payload, "offer_id"), "offer_id"),
        vendor_product_id=_text(payload, "vendor_product_id"),
    )


ADAPTERS: dict[str, Adapter] = {
    "daraz": parse_daraz,
}


def parse_postback(vendor: str, payload: Any, default_currency: str) -> ConversionPayload:
    if not isinstance(payload, dict):
        raise PayloadError("Payload must be a JSON object")
    vendor = vendor.lower()
    adapter = ADAPTERS.get(vendor, parse_generic)
    conversion = adapter(payload, vendor, default_currency)
    if len(conversion.order_id) > 255:
        raise PayloadError("Invalid order_id")
    return conversion
