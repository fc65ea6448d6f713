from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, field_validator


class PurchaseStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class ConfirmationSource(str, Enum):
    CLIENT = "client"
    WEBHOOK = "webhook"


# ==================== REQUEST MODELS ====================

class CheckoutRequest(BaseModel):
    courseId: Optional[str] = None

    @field_validator("courseId", mode="before")
    @classmethod
    def unwrap_course_id(cls, v: Any) -> Any:
        # older clients post {"courseId": {"courseId": "..."}}
        if isinstance(v, dict):
            return v.get("courseId")
        return v


class PaymentVerifyRequest(BaseModel):
    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    razorpay_signature: Optional[str] = None

    def is_complete(self) -> bool:
        return all([self.razorpay_order_id, self.razorpay_payment_id, self.razorpay_signature])
