"""
Pydantic schemas for booking request/response validation.

Checkout and pre-reserve bodies are discriminated by shape: a body with
`scheduleId` and `seats` is a seated request, a body with `quantity` is a
non-seated one. Which one is *allowed* depends on the event's pricing mode
and is decided by the service.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, Union

from pydantic import EmailStr, Field, model_validator

from ticketing.models.booking import BookingStatus
from ticketing.schemas.common import CamelModel, Pagination


class OwnerInfo(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone_number: Optional[str] = Field(None, min_length=5, max_length=32)

    @model_validator(mode="after")
    def require_contact(self):
        if not self.email and not self.phone_number:
            raise ValueError("Either email or phone number is required")
        return self


class AssignUserInfo(OwnerInfo):
    name: Optional[str] = Field(None, min_length=1, max_length=100)


class SeatSelection(CamelModel):
    seat_id: int = Field(..., gt=0)


class NonSeatedCheckout(CamelModel):
    event_id: int
    quantity: int = Field(..., ge=1, le=1000)
    owner_info: OwnerInfo
    # May be 0 for complimentary bookings
    unit_price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)


class SeatedCheckout(CamelModel):
    event_id: int
    schedule_id: int
    seats: list[SeatSelection] = Field(..., min_length=1, max_length=100)
    owner_info: OwnerInfo
    unit_price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)


CheckoutRequest = Union[SeatedCheckout, NonSeatedCheckout]


class PreReserveNonSeated(CamelModel):
    event_id: int
    quantity: int = Field(..., ge=1, le=500)
    unit_price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)


class PreReserveSeated(CamelModel):
    event_id: int
    schedule_id: int
    seats: list[SeatSelection] = Field(..., min_length=1, max_length=100)
    unit_price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)


PreReserveRequest = Union[PreReserveSeated, PreReserveNonSeated]


class StatusUpdate(CamelModel):
    status: BookingStatus
    cancel_reason: Optional[str] = Field(None, max_length=500)


class CancelRequest(CamelModel):
    reason: str = Field(..., min_length=1, max_length=500)


class UsedQuantityUpdate(CamelModel):
    used_quantity: int = Field(..., ge=0)
    status: Optional[BookingStatus] = None


class AssignRequest(CamelModel):
    user_info: AssignUserInfo


class BulkAssignItem(CamelModel):
    booking_id: int
    user_info: AssignUserInfo


class BulkAssignRequest(CamelModel):
    assignments: list[BulkAssignItem] = Field(..., min_length=1, max_length=100)


class UserSummary(CamelModel):
    id: int
    name: str
    email: Optional[str] = None
    phone_number: Optional[str] = None
    is_guest_user: bool


class EventSummary(CamelModel):
    id: int
    name: str
    slug: str
    has_seats: bool


class ScheduleSummary(CamelModel):
    id: int
    event_id: int
    start_at: datetime
    end_at: datetime


class BookingSeatResponse(CamelModel):
    seat_id: int
    schedule_id: int
    zone_type: str
    section_position: str
    row_number: int
    seat_number: int
    seat_label: str


class BookingResponse(CamelModel):
    id: int
    booking_number: str
    user_id: int
    event_id: int
    schedule_id: Optional[int] = None
    quantity: int
    used_quantity: int
    unit_price: float
    total_price: float
    currency: str
    status: BookingStatus
    is_admin_booking: bool
    is_pre_reserved: bool
    booked_by_admin_id: Optional[int] = None
    cancel_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    user: Optional[UserSummary] = None
    booked_by_admin: Optional[UserSummary] = None
    event: Optional[EventSummary] = None
    schedule: Optional[ScheduleSummary] = None
    seats: list[BookingSeatResponse] = []


class CheckoutResponse(CamelModel):
    booking: BookingResponse
    is_new_user: bool
    seats_booked: list[str] = []


class BookingListResponse(CamelModel):
    items: list[BookingResponse]
    pagination: Pagination


class PreReservedBooking(CamelModel):
    booking_id: int
    booking_number: str
    guest_user_id: int
    seat_label: Optional[str] = None


class PreReserveResponse(CamelModel):
    event_id: int
    schedule_id: Optional[int] = None
    count: int
    unit_price: float
    bookings: list[PreReservedBooking]


class AssignResponse(CamelModel):
    booking: BookingResponse
    is_new_user: bool
    previous_owner_deleted: bool


class BulkAssignResult(CamelModel):
    booking_id: int
    success: bool
    booking_number: Optional[str] = None
    user_id: Optional[int] = None
    is_new_user: Optional[bool] = None
    error: Optional[str] = None


class BulkAssignResponse(CamelModel):
    success: bool
    total: int
    success_count: int
    failed_count: int
    results: list[BulkAssignResult]


class PurgeGuestsResponse(CamelModel):
    deleted_count: int


class SeatAvailabilityResponse(CamelModel):
    schedule_id: int
    available: bool
    conflicting_seat_ids: list[int]
    conflicting_seat_labels: list[str]
