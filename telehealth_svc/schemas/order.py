"""
Pydantic schemas for order documents.

`totalAmount` is derived from the line items when the client does not send it.
"""
from enum import Enum
from typing import Any, ClassVar, Dict, FrozenSet, List, Optional

from pydantic import Field

from telehealth_svc.schemas.common import ApiModel, DocumentModel, DocumentUpdateModel


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    RETURNED = "returned"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    AUTHORIZED = "authorized"
    CAPTURED = "captured"
    FAILED = "failed"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"


class OrderItem(ApiModel):
    product_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)
    unit_price: float = Field(..., ge=0)
    dosage: Optional[str] = None


def order_total(items: List[OrderItem]) -> float:
    return round(sum(item.quantity * item.unit_price for item in items), 2)


class _TotalsMixin:
    """Fills totalAmount from items when items were sent without a total."""

    def to_document(self, partial: bool = False) -> Dict[str, Any]:
        document = super().to_document(partial)
        sent = self.model_fields_set
        if self.items is not None and "items" in sent and "total_amount" not in sent:
            document["totalAmount"] = order_total(self.items)
        return document


class OrderCreate(_TotalsMixin, DocumentModel):
    patient_id: str = Field(..., min_length=1)
    provider_id: Optional[str] = None
    items: List[OrderItem] = Field(..., min_length=1)
    total_amount: Optional[float] = Field(None, ge=0, description="Computed from items when omitted")
    currency: str = Field("USD", min_length=3, max_length=3)
    status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    tracking_number: Optional[str] = None
    notes: Optional[str] = None


class OrderUpdate(_TotalsMixin, DocumentUpdateModel):
    not_nullable: ClassVar[FrozenSet[str]] = frozenset({"items", "currency", "status", "payment_status"})

    provider_id: Optional[str] = None
    items: Optional[List[OrderItem]] = Field(None, min_length=1)
    total_amount: Optional[float] = Field(None, ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None
    tracking_number: Optional[str] = None
    notes: Optional[str] = None
