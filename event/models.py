from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, condecimal, conint, constr

from event.constants import MAX_IMAGE_BYTES, EventStatus


class TicketTypeCreate(BaseModel):
    class Config:
        populate_by_name = True

    name: constr(min_length=1, max_length=100)
    description: Optional[str] = ""
    price: condecimal(ge=0, max_digits=10, decimal_places=2)
    quantity: conint(ge=1)
    sales_start_date: Optional[datetime] = Field(default=None, alias="salesStartDate")
    sales_end_date: Optional[datetime] = Field(default=None, alias="salesEndDate")

    def validate_window(self):
        if (
            self.sales_start_date
            and self.sales_end_date
            and self.sales_end_date < self.sales_start_date
        ):
            raise ValueError(
                f'Sales end date must be after sales start date for ticket type "{self.name}"'
            )


def validate_image(image_data_url: Optional[str]):
    if not image_data_url:
        return
    if not image_data_url.startswith("data:image/"):
        raise ValueError(
            "Invalid image format. Must be a data URL starting with data:image/"
        )
    # base64 carries 3 bytes in every 4 characters
    if len(image_data_url) * 0.75 > MAX_IMAGE_BYTES:
        raise ValueError("Image size exceeds 2MB limit")


class EventCreate(BaseModel):
    class Config:
        populate_by_name = True

    name: constr(min_length=1, max_length=255)
    description: constr(min_length=1)
    location: constr(min_length=1, max_length=255)
    start_date: datetime
    end_date: datetime
    ticket_quantity: Optional[conint(ge=0)] = None
    ticket_price: Optional[condecimal(ge=0, max_digits=10, decimal_places=2)] = None
    ticket_types: List[TicketTypeCreate] = Field(default_factory=list, alias="ticketTypes")
    image_data_url: Optional[str] = None
    status: str = EventStatus.DRAFT

    def validate_event(self):
        if self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        if not self.ticket_types and (not self.ticket_quantity or self.ticket_price is None):
            raise ValueError(
                "Either provide ticket_quantity and ticket_price or at least one ticket type"
            )
        if self.status not in EventStatus.values():
            raise ValueError(
                f"Invalid status. Must be one of: {', '.join(EventStatus.values())}"
            )
        validate_image(self.image_data_url)
        for ticket_type in self.ticket_types:
            ticket_type.validate_window()

    def legacy_ticket_fields(self):
        """Event-level quantity and price stored alongside explicit tiers."""
        if self.ticket_types:
            return 0, min(ticket_type.price for ticket_type in self.ticket_types)
        return self.ticket_quantity or 0, self.ticket_price or 0


class EventUpdate(BaseModel):
    name: Optional[constr(min_length=1, max_length=255)] = None
    description: Optional[str] = None
    location: Optional[constr(min_length=1, max_length=255)] = None
    image_data_url: Optional[str] = None
    ticket_quantity: Optional[conint(ge=0)] = None
    ticket_price: Optional[condecimal(ge=0, max_digits=10, decimal_places=2)] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    status: Optional[str] = None

    def validate_update(self):
        if not self.model_dump(exclude_none=True):
            raise ValueError("No valid fields provided for update")
        if self.status and self.status not in EventStatus.values():
            raise ValueError(
                f"Invalid status. Must be one of: {', '.join(EventStatus.values())}"
            )
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        validate_image(self.image_data_url)


class EventStatusUpdate(BaseModel):
    status: str

    def validate_status(self):
        if self.status not in EventStatus.values():
            raise ValueError(
                f"Invalid status. Must be one of: {', '.join(EventStatus.values())}"
            )
