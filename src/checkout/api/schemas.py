"""Pydantic request/response schemas for the Checkout API.

These are external contracts, kept separate from the Protean aggregates.
"""

from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class StorefrontModel(BaseModel):
    """Accepts the storefront's camelCase keys as well as field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ContactSchema(StorefrontModel):
    email: str
    phone: str | None = None
    marketing_opt_in: bool = False


class AddressSchema(StorefrontModel):
    first_name: str
    last_name: str | None = None
    address: str
    city: str
    state: str | None = None
    country: str = "Pakistan"
    postal_code: str | None = None
    phone: str | None = None


class CheckoutItemSchema(StorefrontModel):
    product_id: str
    variant_id: str | None = None
    quantity: int = Field(ge=1, validation_alias=AliasChoices("quantity", "qty"))
    price: float = Field(ge=0)
    label: str | None = Field(default=None, validation_alias=AliasChoices("label", "variant_label", "variantLabel"))
    image: str | None = None


# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------
class CheckoutRequest(StorefrontModel):
    contact: ContactSchema
    shipping_address: AddressSchema
    billing_address: AddressSchema | None = None
    items: list[CheckoutItemSchema] = Field(min_length=1)
    subtotal: float = Field(ge=0)
    shipping_fee: float = Field(ge=0, default=0.0)
    total: float = Field(ge=0)
    shipping_method: str = "home_delivery"
    user_id: str | None = None
    session_id: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "contact": {"email": "ayesha@example.com", "phone": "03001234567"},
                    "shipping_address": {
                        "first_name": "Ayesha",
                        "last_name": "Khan",
                        "address": "12 Mall Road",
                        "city": "Lahore",
                        "phone": "03001234567",
                    },
                    "items": [{"product_id": "P1", "quantity": 2, "price": 500, "label": "Red Chilli 200g"}],
                    "subtotal": 1000,
                    "shipping_fee": 0,
                    "total": 1000,
                    "shipping_method": "home_delivery",
                }
            ]
        }
    }


class ChangeStatusRequest(BaseModel):
    status: str
    changed_by: str = "admin"
    reason: str | None = None


class ReceiveStockRequest(BaseModel):
    product_id: str
    variant_id: str | None = None
    quantity: int = Field(ge=0)
    label: str | None = None


class AvailabilityLineSchema(StorefrontModel):
    product_id: str
    variant_id: str | None = None
    quantity: int = Field(ge=1, validation_alias=AliasChoices("quantity", "qty"))
    label: str | None = None


class AvailabilityRequest(StorefrontModel):
    items: list[AvailabilityLineSchema] = Field(min_length=1)


class ProcessJobsRequest(BaseModel):
    as_of: datetime | None = None


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class OrderResponse(BaseModel):
    id: str
    order_id: str
    ref_id: str
    status: str
    shipping_method: str
    order_type: str | None = None
    user_id: str | None = None
    contact: dict | None = None
    shipping_address: dict | None = None
    billing_address: dict | None = None
    payment: dict | None = None
    items: list[dict] = []
    subtotal: float
    shipping_fee: float | None = None
    total: float
    history: list[dict] = []
    courier: dict | None = None
    courier_tracking: list[dict] = []
    tracking_number: str | None = None
    stock_committed: bool = False
    created_at: datetime | None = None

    @classmethod
    def from_order(cls, order) -> "OrderResponse":
        data = order.to_dict()
        return cls(
            id=str(order.id),
            order_id=order.order_number,
            ref_id=order.ref_number,
            status=order.status,
            shipping_method=order.shipping_method,
            order_type=order.order_type,
            user_id=str(order.user_id) if order.user_id else None,
            contact=data.get("contact"),
            shipping_address=data.get("shipping_address"),
            billing_address=data.get("billing_address"),
            payment=data.get("payment"),
            items=data.get("items") or [],
            subtotal=order.subtotal,
            shipping_fee=order.shipping_fee,
            total=order.total,
            history=[entry.to_dict() for entry in order.status_history()],
            courier=data.get("courier"),
            courier_tracking=[entry.to_dict() for entry in order.tracking_history()],
            tracking_number=order.tracking_number,
            stock_committed=bool(order.stock_committed),
            created_at=order.created_at,
        )


class CheckoutResponse(BaseModel):
    success: bool = True
    order_id: str
    ref_id: str
    order: OrderResponse


class CourierRefreshResponse(BaseModel):
    changed: bool
    courier_status: str | None = None
    order_status: str | None = None
    error: str | None = None


class StockResponse(BaseModel):
    stock_key: str
    product_id: str
    variant_id: str | None = None
    label: str | None = None
    available: int


class AvailabilityResponse(BaseModel):
    available: bool
    errors: list[dict] = []


class ScheduledJobResponse(BaseModel):
    id: str
    job_type: str
    status: str
    run_at: datetime
    attempts: int = 0
    last_error: str | None = None
    payload: dict


class ProcessJobsResponse(BaseModel):
    processed: int
    done: int
    failed: int
