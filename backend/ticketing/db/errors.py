"""
Store-agnostic detection of uniqueness violations.

Reservation and assignment logic only ever asks "was this a unique
constraint?"; the driver-specific details live here.
"""

from typing import Optional

from sqlalchemy.exc import IntegrityError

# SQLSTATE for unique_violation (PostgreSQL, also reported by asyncpg)
PG_UNIQUE_VIOLATION = "23505"


def _sqlstate(orig: object) -> Optional[str]:
    for attr in ("sqlstate", "pgcode"):
        code = getattr(orig, attr, None)
        if code:
            return str(code)
    cause = getattr(orig, "__cause__", None)
    if cause is not None and cause is not orig:
        return getattr(cause, "sqlstate", None)
    return None


def is_unique_constraint_violation(error: BaseException) -> bool:
    if not isinstance(error, IntegrityError):
        return False

    orig = getattr(error, "orig", None)
    if _sqlstate(orig) == PG_UNIQUE_VIOLATION:
        return True

    message = str(orig if orig is not None else error).lower()
    # sqlite: "UNIQUE constraint failed: booking_seats.seat_id, ..."
    return "unique constraint" in message or "duplicate key" in message


def violated_constraint(error: BaseException) -> Optional[str]:
    """Best-effort constraint name, used only for log context."""
    orig = getattr(error, "orig", None)
    diag = getattr(orig, "diag", None)
    name = getattr(diag, "constraint_name", None)
    if name:
        return name
    return getattr(orig, "constraint_name", None)
