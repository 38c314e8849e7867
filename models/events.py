"""
Typed Stripe webhook events.

Stripe delivers loosely structured JSON. ``parse_event`` decodes the payload
once, at the webhook boundary, into one model per event type we act on and
``UnhandledEvent`` for everything else, so the reconciler only ever deals
with validated shapes. Expandable references (``customer``, ``subscription``,
``payment_intent``) are collapsed to their ids whether or not Stripe expanded
them.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator


class EventType(str, Enum):
    CHECKOUT_COMPLETED = "checkout.session.completed"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"
    INVOICE_PAYMENT_SUCCEEDED = "invoice.payment_succeeded"
    INVOICE_PAYMENT_FAILED = "invoice.payment_failed"


def _expandable_id(value: Any) -> Any:
    if isinstance(value, dict):
        return value.get("id")
    return value


def _first_item(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    container = data.get(key) or {}
    items = container.get("data") if isinstance(container, dict) else None
    if items:
        return items[0] or {}
    return {}


class CheckoutSession(BaseModel):
    id: str
    mode: str
    client_reference_id: Optional[str] = None
    customer: Optional[str] = None
    subscription: Optional[str] = None
    payment_intent: Optional[str] = None
    payment_status: Optional[str] = None
    amount_total: Optional[int] = None
    currency: Optional[str] = None
    metadata: Dict[str, str] = Field(default_factory=dict)
    # Only present when line_items were expanded on the payload
    price_id: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _extract_price(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("price_id"):
            price = _first_item(data, "line_items").get("price")
            if price:
                data = {**data, "price_id": _expandable_id(price)}
        return data

    @field_validator("customer", "subscription", "payment_intent", mode="before")
    @classmethod
    def _collapse_expanded(cls, value: Any) -> Any:
        return _expandable_id(value)

    @field_validator("metadata", mode="before")
    @classmethod
    def _metadata_or_empty(cls, value: Any) -> Any:
        return value or {}

    @property
    def user_id(self) -> Optional[str]:
        return self.client_reference_id or self.metadata.get("userId")


class SubscriptionObject(BaseModel):
    id: str
    customer: Optional[str] = None
    status: str
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    price_id: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _flatten_items(cls, data: Any) -> Any:
        # Newer API versions carry the billing period on the subscription item
        if not isinstance(data, dict):
            return data
        item = _first_item(data, "items")
        flattened = dict(data)
        for key in ("current_period_start", "current_period_end"):
            if flattened.get(key) is None and item.get(key) is not None:
                flattened[key] = item[key]
        if not flattened.get("price_id") and item.get("price"):
            flattened["price_id"] = _expandable_id(item["price"])
        if flattened.get("cancel_at_period_end") is None:
            flattened["cancel_at_period_end"] = False
        return flattened

    @field_validator("customer", mode="before")
    @classmethod
    def _collapse_expanded(cls, value: Any) -> Any:
        return _expandable_id(value)


class InvoiceObject(BaseModel):
    id: str
    customer: Optional[str] = None
    subscription: Optional[str] = None
    payment_intent: Optional[str] = None
    amount_paid: int = 0
    amount_due: int = 0
    currency: str = "usd"
    payment_method: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _subscription_from_parent(cls, data: Any) -> Any:
        if not isinstance(data, dict) or data.get("subscription"):
            return data
        parent = data.get("parent") or {}
        details = parent.get("subscription_details") or {}
        if details.get("subscription"):
            return {**data, "subscription": details["subscription"]}
        return data

    @field_validator("customer", "subscription", "payment_intent", "payment_method", mode="before")
    @classmethod
    def _collapse_expanded(cls, value: Any) -> Any:
        return _expandable_id(value)


class CheckoutCompletedEvent(BaseModel):
    id: str
    type: Literal["checkout.session.completed"]
    session: CheckoutSession


class SubscriptionUpdatedEvent(BaseModel):
    id: str
    type: Literal["customer.subscription.updated"]
    subscription: SubscriptionObject


class SubscriptionDeletedEvent(BaseModel):
    id: str
    type: Literal["customer.subscription.deleted"]
    subscription: SubscriptionObject


class InvoicePaymentSucceededEvent(BaseModel):
    id: str
    type: Literal["invoice.payment_succeeded"]
    invoice: InvoiceObject


class InvoicePaymentFailedEvent(BaseModel):
    id: str
    type: Literal["invoice.payment_failed"]
    invoice: InvoiceObject


class UnhandledEvent(BaseModel):
    id: str
    type: str


WebhookEvent = Union[
    CheckoutCompletedEvent,
    SubscriptionUpdatedEvent,
    SubscriptionDeletedEvent,
    InvoicePaymentSucceededEvent,
    InvoicePaymentFailedEvent,
    UnhandledEvent,
]

# event type -> (model, field receiving data.object)
_EVENT_MODELS = {
    EventType.CHECKOUT_COMPLETED.value: (CheckoutCompletedEvent, "session"),
    EventType.SUBSCRIPTION_UPDATED.value: (SubscriptionUpdatedEvent, "subscription"),
    EventType.SUBSCRIPTION_DELETED.value: (SubscriptionDeletedEvent, "subscription"),
    EventType.INVOICE_PAYMENT_SUCCEEDED.value: (InvoicePaymentSucceededEvent, "invoice"),
    EventType.INVOICE_PAYMENT_FAILED.value: (InvoicePaymentFailedEvent, "invoice"),
}


def parse_event(payload: Dict[str, Any]) -> WebhookEvent:
    """
    Decode a Stripe event payload. Raises ValueError (pydantic's
    ValidationError included) when a handled event type is malformed.
    """
    if not isinstance(payload, dict):
        raise ValueError("Event payload must be a JSON object")

    event_id = payload.get("id")
    event_type = payload.get("type")
    if not event_id or not event_type:
        raise ValueError("Event payload is missing id or type")

    entry = _EVENT_MODELS.get(event_type)
    if entry is None:
        return UnhandledEvent(id=event_id, type=event_type)

    model, field = entry
    data = payload.get("data") or {}
    return model(**{"id": event_id, "type": event_type, field: data.get("object")})
