"""
Parsing of CHIP purchase callbacks into one variant per payment status.

The gateway owns the payload schema, so every field is read defensively:
missing keys fall back to neutral values instead of failing the delivery.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

DEFAULT_CURRENCY = "MYR"
CENTS = Decimal("100")


class MalformedWebhook(ValueError):
    pass


def _dict(value) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _list(value) -> List[Any]:
    return value if isinstance(value, list) else []


def _minor_units(value) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(Decimal(str(value)))
    except (InvalidOperation, ValueError):
        return None


@dataclass(frozen=True)
class ChipPurchase:
    id: str
    status: str
    total: Optional[int] = None
    currency: Optional[str] = None
    products: List[Dict[str, Any]] = field(default_factory=list)
    attempts: List[Dict[str, Any]] = field(default_factory=list)
    payment_method_hint: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data):
        purchase = _dict(data.get("purchase"))
        transaction_data = _dict(data.get("transaction_data"))
        total = _minor_units(purchase.get("total"))
        if total is None:
            # older callbacks only carry `amount`
            total = _minor_units(purchase.get("amount"))
        return cls(
            id=str(data.get("id") or ""),
            status=str(data.get("status") or "").strip().lower(),
            total=total,
            currency=purchase.get("currency") or None,
            products=[p for p in _list(purchase.get("products")) if isinstance(p, dict)],
            attempts=[a for a in _list(transaction_data.get("attempts")) if isinstance(a, dict)],
            payment_method_hint=data.get("payment_method") or None,
            raw=data,
        )

    @property
    def amount(self) -> Decimal:
        """Purchase total converted from cents to major units."""
        if not self.total:
            return Decimal("0.00")
        return (Decimal(self.total) / CENTS).quantize(Decimal("0.01"))

    def currency_or(self, default=DEFAULT_CURRENCY):
        return self.currency or default

    @property
    def last_attempt(self) -> Optional[Dict[str, Any]]:
        return self.attempts[-1] if self.attempts else None

    @property
    def payment_method(self) -> str:
        method = (self.last_attempt or {}).get("payment_method") or self.payment_method_hint
        return f"chip-{method}" if method else "chip"

    @property
    def category(self) -> Optional[str]:
        if not self.products:
            return None
        return self.products[0].get("category") or None


@dataclass(frozen=True)
class WebhookEvent:
    purchase: ChipPurchase

    @property
    def payment_id(self):
        return self.purchase.id

    @property
    def status(self):
        return self.purchase.status

    @property
    def event_id(self):
        """Idempotency key: one application per (payment, status)."""
        return f"{self.purchase.id}:{self.purchase.status}"


class PaymentPaid(WebhookEvent):
    pass


class PaymentFailed(WebhookEvent):
    pass


class PaymentCanceled(WebhookEvent):
    pass


class PaymentPending(WebhookEvent):
    pass


class PaymentViewed(WebhookEvent):
    pass


@dataclass(frozen=True)
class UnknownStatus(WebhookEvent):
    raw_status: str = ""


STATUS_VARIANTS = {
    "paid": PaymentPaid,
    "failed": PaymentFailed,
    "error": PaymentFailed,
    "canceled": PaymentCanceled,
    "created": PaymentPending,
    "pending": PaymentPending,
    "viewed": PaymentViewed,
}


def classify(purchase: ChipPurchase) -> WebhookEvent:
    variant = STATUS_VARIANTS.get(purchase.status)
    if variant is None:
        return UnknownStatus(purchase=purchase, raw_status=purchase.status)
    return variant(purchase=purchase)


def parse_webhook(raw) -> WebhookEvent:
    """Decode a raw callback body (bytes or str) and classify it by status."""
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedWebhook("Webhook body is not valid UTF-8") from exc
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise MalformedWebhook("Webhook body is not valid JSON") from exc
    if not isinstance(data, dict):
        raise MalformedWebhook("Webhook body must be a JSON object")
    return classify(ChipPurchase.from_dict(data))
