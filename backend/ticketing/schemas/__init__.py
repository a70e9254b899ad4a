from ticketing.schemas.booking import (
    CheckoutRequest, PreReserveRequest, BookingResponse, CheckoutResponse,
    BookingListResponse, PreReserveResponse, AssignResponse, BulkAssignResponse,
)
from ticketing.schemas.schedule_worker import (
    ScheduleWorkerCreate, ScheduleWorkerResponse, ScheduleWorkerListResponse,
)

__all__ = [
    "CheckoutRequest", "PreReserveRequest", "BookingResponse", "CheckoutResponse",
    "BookingListResponse", "PreReserveResponse", "AssignResponse", "BulkAssignResponse",
    "ScheduleWorkerCreate", "ScheduleWorkerResponse", "ScheduleWorkerListResponse",
]
