"""
Payment gateway webhook decoding.

Raw webhook JSON is decoded once, at the boundary, into a ``GatewayEvent``.
Everything downstream works on the typed event and never looks at the raw
payload again. Each gateway registers a classifier in ``CLASSIFIERS``.
"""
import enum
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, Optional

from segvenc.exceptions import ValidationError
from segvenc.utils.dates import parse_date

logger = logging.getLogger(__name__)


class EventKind(enum.Enum):
    """Closed set of subscription-relevant event kinds."""
    PAID_OR_RENEWED = 'paid_or_renewed'
    CANCELED_OR_REFUNDED = 'canceled_or_refunded'
    PAST_DUE = 'past_due'
    UNKNOWN = 'unknown'


@dataclass(frozen=True)
class GatewayEvent:
    """A classified gateway notification."""
    gateway: str
    kind: EventKind
    buyer_email: str
    buyer_name: Optional[str] = None
    subscription_id: Optional[str] = None
    sale_id: Optional[str] = None
    product_id: Optional[str] = None
    product_name: Optional[str] = None
    plan_name: Optional[str] = None
    start_date: Optional[date] = None
    approved_date: Optional[date] = None
    next_payment: Optional[date] = None

    @property
    def plan_label(self) -> Optional[str]:
        """Plan name, else product name, else ``kiwify_prod_<product_id>``."""
        if self.plan_name:
            return self.plan_name
        if self.product_name:
            return self.product_name
        if self.product_id:
            return f"{self.gateway}_prod_{self.product_id}"
        return None


CANCEL_ORDER_STATUSES = {'refunded', 'chargedback', 'canceled'}


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _lower(value: Any) -> Optional[str]:
    text = _text(value)
    return text.lower() if text else None


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def kiwify_signal(order_status: Optional[str], subscription_status: Optional[str]) -> EventKind:
    """
    Classify a Kiwify notification from its order and subscription status.

    Kiwify does not send the trigger name in the body, so the kind is
    inferred from the two status fields.
    """
    if subscription_status == 'canceled' or order_status in CANCEL_ORDER_STATUSES:
        return EventKind.CANCELED_OR_REFUNDED
    if subscription_status == 'late' or order_status == 'late':
        return EventKind.PAST_DUE
    if order_status == 'paid' and subscription_status in (None, 'active'):
        return EventKind.PAID_OR_RENEWED
    return EventKind.UNKNOWN


def classify_kiwify(payload: Dict[str, Any]) -> GatewayEvent:
    """
    Decode a Kiwify webhook body.

    Accepts the nested shape ``{"order": {"order_status", "buyer": {...},
    "subscription_id", "product_id", "order_id"}}`` and the flat shape
    ``{"order_status", "Customer", "Subscription", "Product", "order_id"}``.

    Raises:
        ValidationError: If the buyer email is missing
    """
    if isinstance(payload.get('order'), dict):
        order = payload['order']
        buyer = _as_dict(order.get('buyer'))
        subscription = _as_dict(order.get('subscription') or order.get('Subscription'))
        product = {}
        order_status = _lower(order.get('order_status'))
        email = _lower(buyer.get('email'))
        name = _text(buyer.get('name'))
        subscription_id = _text(order.get('subscription_id')) or _text(subscription.get('id'))
        sale_id = _text(order.get('order_id'))
        product_id = _text(order.get('product_id'))
        approved = order.get('approved_date')
    else:
        buyer = _as_dict(payload.get('Customer'))
        subscription = _as_dict(payload.get('Subscription'))
        product = _as_dict(payload.get('Product'))
        order_status = _lower(payload.get('order_status'))
        email = _lower(buyer.get('email'))
        name = _text(buyer.get('full_name')) or _text(buyer.get('name'))
        subscription_id = _text(subscription.get('subscription_id')) or _text(subscription.get('id'))
        sale_id = _text(payload.get('order_id'))
        product_id = _text(product.get('product_id'))
        approved = payload.get('approved_date')

    if not email:
        raise ValidationError("Webhook sem e-mail do comprador")

    kind = kiwify_signal(order_status, _lower(subscription.get('status')))
    plan = _as_dict(subscription.get('plan'))

    return GatewayEvent(
        gateway='kiwify',
        kind=kind,
        buyer_email=email,
        buyer_name=name,
        subscription_id=subscription_id,
        sale_id=sale_id,
        product_id=product_id,
        product_name=_text(product.get('product_name')),
        plan_name=_text(plan.get('name')),
        start_date=parse_date(subscription.get('start_date')),
        approved_date=parse_date(approved),
        next_payment=parse_date(subscription.get('next_payment')),
    )


CLASSIFIERS: Dict[str, Callable[[Dict[str, Any]], GatewayEvent]] = {
    'kiwify': classify_kiwify,
}


def decode_event(gateway: str, payload: Any) -> GatewayEvent:
    """
    Decode a parsed webhook body with the classifier registered for ``gateway``.

    Raises:
        ValidationError: Unknown gateway, non-object body or missing buyer email
    """
    classifier = CLASSIFIERS.get(gateway)
    if classifier is None:
        raise ValidationError(f"Gateway não suportado: {gateway}")
    if not isinstance(payload, dict):
        raise ValidationError("Corpo do webhook deve ser um objeto JSON")
    event = classifier(payload)
    logger.info(f"Decoded {gateway} webhook: kind={event.kind.value}, subscription={event.subscription_id}")
    return event
