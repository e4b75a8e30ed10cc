"""
Typed payment provider events.

Only the fields the reconciler needs are modelled; everything else in the
Stripe payload is kept but ignored.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

PAYMENT_SUCCEEDED = "payment_intent.succeeded"


class EventData(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    payload: Dict[str, Any] = Field(default_factory=dict, alias="object")


class PaymentEvent(BaseModel):
    """A verified Stripe event"""
    model_config = ConfigDict(extra="allow")

    id: str
    type: str
    created: Optional[datetime] = None
    data: EventData = Field(default_factory=EventData)

    @property
    def is_payment_succeeded(self) -> bool:
        return self.type == PAYMENT_SUCCEEDED

    @property
    def order_id(self) -> Optional[str]:
        """Order referenced through ``metadata.orderId`` on the event object"""
        metadata = self.data.payload.get("metadata")
        if not isinstance(metadata, dict):
            return None
        order_id = metadata.get("orderId")
        return str(order_id) if order_id else None
