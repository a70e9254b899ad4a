"""
Dashboard booking endpoints: checkout, listing, status machine,
pre-reservation and assignment.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.core.security import get_current_user_id
from ticketing.db.session import get_db
from ticketing.models.booking import Booking, BookingStatus
from ticketing.schemas.booking import (
    AssignRequest, AssignResponse, BookingListResponse, BookingResponse,
    BulkAssignRequest, BulkAssignResponse, BulkAssignResult, CancelRequest,
    CheckoutRequest, CheckoutResponse, PreReservedBooking, PreReserveRequest,
    PreReserveResponse, PurgeGuestsResponse, StatusUpdate, UsedQuantityUpdate,
)
from ticketing.schemas.common import Pagination
from ticketing.services.booking_service import BookingFilters, BookingService
from ticketing.services.guest_service import GuestService

router = APIRouter(prefix="/bookings", tags=["Bookings"])


def get_booking_service(db: AsyncSession = Depends(get_db)) -> BookingService:
    return BookingService(db)


def get_guest_service(db: AsyncSession = Depends(get_db)) -> GuestService:
    return GuestService(db)


def to_response(booking: Booking) -> BookingResponse:
    return BookingResponse.model_validate(booking)


@router.post("/checkout", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED)
async def checkout(
    payload: CheckoutRequest,
    actor_id: int = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service),
):
    """
    Create an admin booking, confirmed immediately.

    A body with `scheduleId` + `seats` books specific seats; a body with
    `quantity` books general admission. Seats already taken, even by a
    request that raced this one, come back as 409 naming the seats.
    """
    result = await service.checkout(payload, actor_id=actor_id)
    return CheckoutResponse(
        booking=to_response(result.booking),
        is_new_user=result.is_new_user,
        seats_booked=result.seats_booked,
    )


@router.get("", response_model=BookingListResponse)
async def list_bookings(
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    event_id: Optional[int] = Query(None, alias="eventId"),
    schedule_id: Optional[int] = Query(None, alias="scheduleId"),
    user_id: Optional[int] = Query(None, alias="userId"),
    is_admin_booking: Optional[bool] = Query(None, alias="isAdminBooking"),
    is_pre_reserved: Optional[bool] = Query(None, alias="isPreReserved"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100, alias="pageSize"),
    _actor_id: int = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service),
):
    filters = BookingFilters(
        status=status_filter,
        event_id=event_id,
        schedule_id=schedule_id,
        user_id=user_id,
        is_admin_booking=is_admin_booking,
        is_pre_reserved=is_pre_reserved,
        start_date=start_date,
        end_date=end_date,
        search=search,
    )
    bookings, total = await service.list_bookings(filters, page=page, page_size=page_size)
    return BookingListResponse(
        items=[to_response(booking) for booking in bookings],
        pagination=Pagination.build(page, page_size, total),
    )


@router.post("/pre-reserve", response_model=PreReserveResponse, status_code=status.HTTP_201_CREATED)
async def pre_reserve(
    payload: PreReserveRequest,
    actor_id: int = Depends(get_current_user_id),
    service: GuestService = Depends(get_guest_service),
):
    """Hold inventory under placeholder guest users until it is assigned."""
    result = await service.pre_reserve(payload, actor_id=actor_id)
    return PreReserveResponse(
        event_id=result.event_id,
        schedule_id=result.schedule_id,
        count=len(result.items),
        unit_price=float(result.unit_price),
        bookings=[
            PreReservedBooking(
                booking_id=item.booking.id,
                booking_number=item.booking.booking_number,
                guest_user_id=item.guest.id,
                seat_label=item.seat_label,
            )
            for item in result.items
        ],
    )


@router.post("/assign-bulk", response_model=BulkAssignResponse)
async def assign_bulk(
    payload: BulkAssignRequest,
    _actor_id: int = Depends(get_current_user_id),
    service: GuestService = Depends(get_guest_service),
):
    """Best-effort: always 200, per-item outcome in `results`."""
    outcome = await service.assign_bulk(payload.assignments)
    return BulkAssignResponse(
        success=outcome.success,
        total=outcome.total,
        success_count=outcome.success_count,
        failed_count=outcome.failed_count,
        results=[
            BulkAssignResult(
                booking_id=item.booking_id,
                success=item.success,
                booking_number=item.booking_number,
                user_id=item.user_id,
                is_new_user=item.is_new_user,
                error=item.error,
            )
            for item in outcome.results
        ],
    )


@router.post("/guests/purge", response_model=PurgeGuestsResponse)
async def purge_orphan_guests(
    _actor_id: int = Depends(get_current_user_id),
    service: GuestService = Depends(get_guest_service),
):
    deleted = await service.purge_orphan_guests()
    return PurgeGuestsResponse(deleted_count=deleted)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: int,
    _actor_id: int = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service),
):
    return to_response(await service.get_booking(booking_id))


@router.patch("/{booking_id}/status", response_model=BookingResponse)
async def update_booking_status(
    booking_id: int,
    payload: StatusUpdate,
    _actor_id: int = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service),
):
    """Move a booking through the status machine. CANCELLED releases its seats."""
    booking = await service.update_status(booking_id, payload.status, payload.cancel_reason)
    return to_response(booking)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: int,
    payload: CancelRequest,
    _actor_id: int = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service),
):
    return to_response(await service.cancel(booking_id, payload.reason))


@router.patch("/{booking_id}/used-quantity", response_model=BookingResponse)
async def update_used_quantity(
    booking_id: int,
    payload: UsedQuantityUpdate,
    _actor_id: int = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service),
):
    booking = await service.update_used_quantity(booking_id, payload.used_quantity, payload.status)
    return to_response(booking)


@router.post("/{booking_id}/assign", response_model=AssignResponse)
async def assign_booking(
    booking_id: int,
    payload: AssignRequest,
    _actor_id: int = Depends(get_current_user_id),
    service: GuestService = Depends(get_guest_service),
):
    """Hand a pre-reserved booking to a real user; the placeholder guest is removed if orphaned."""
    result = await service.assign_booking(booking_id, payload.user_info)
    return AssignResponse(
        booking=to_response(result.booking),
        is_new_user=result.is_new_user,
        previous_owner_deleted=result.previous_owner_deleted,
    )
