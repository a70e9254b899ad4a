from ticketing.models.user import User
from ticketing.models.event import Event, Schedule
from ticketing.models.venue import Zone, Section, SeatRow, Seat, ZonePricing, ZoneType, SectionPosition
from ticketing.models.booking import Booking, BookingSeat, BookingStatus
from ticketing.models.schedule_worker import ScheduleWorker

__all__ = [
    "User",
    "Event", "Schedule",
    "Zone", "Section", "SeatRow", "Seat", "ZonePricing", "ZoneType", "SectionPosition",
    "Booking", "BookingSeat", "BookingStatus",
    "ScheduleWorker",
]
