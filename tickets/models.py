from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, EmailStr, condecimal, conint, constr

from tickets.constants import MAX_TICKETS_PER_PURCHASE, TicketStatus


class SaleCreate(BaseModel):
    customer_name: constr(min_length=1, max_length=255)
    customer_email: EmailStr
    ticket_type_id: Optional[int] = None
    amount: Optional[condecimal(ge=0, max_digits=10, decimal_places=2)] = None
    transaction_id: Optional[constr(min_length=1, max_length=100)] = None
    status: str = TicketStatus.PAID

    def validate_status(self):
        if self.status not in TicketStatus.values():
            raise ValueError(
                f"Invalid status. Must be one of: {', '.join(TicketStatus.values())}"
            )


class PurchaseRequest(BaseModel):
    event_id: int
    ticket_type_id: Optional[int] = None  # None buys the event's default tier
    quantity: conint(ge=1, le=MAX_TICKETS_PER_PURCHASE) = 1
    customer_name: constr(min_length=1, max_length=255)
    customer_email: EmailStr


class TicketStatusUpdate(BaseModel):
    status: str

    def validate_status(self):
        if self.status not in TicketStatus.values():
            raise ValueError(
                f"Invalid status. Must be one of: {', '.join(TicketStatus.values())}"
            )


class TicketValidation(BaseModel):
    valid: bool
    ticket_number: str
    status: str
    event_id: Optional[int] = None
    event_name: Optional[str] = None
    ticket_type: Optional[str] = None
    customer_name: Optional[str] = None
    price: Optional[Decimal] = None
    scanned: bool = False
    already_scanned: bool = False
