"""
Tests for store-agnostic unique violation detection.
"""

from sqlalchemy.exc import IntegrityError, OperationalError

from ticketing.db.errors import is_unique_constraint_violation, violated_constraint


class PgDiag:
    def __init__(self, constraint_name):
        self.constraint_name = constraint_name


class PgDriverError(Exception):
    def __init__(self, message, sqlstate, constraint_name=None):
        super().__init__(message)
        self.sqlstate = sqlstate
        self.diag = PgDiag(constraint_name)


def integrity_error(orig: Exception) -> IntegrityError:
    return IntegrityError("INSERT INTO booking_seats ...", {}, orig)


def test_postgres_sqlstate_23505_is_unique():
    error = integrity_error(
        PgDriverError("could not insert", sqlstate="23505", constraint_name="uq_booking_seat_schedule")
    )
    assert is_unique_constraint_violation(error) is True
    assert violated_constraint(error) == "uq_booking_seat_schedule"


def test_postgres_other_sqlstate_is_not_unique():
    # not_null_violation
    error = integrity_error(PgDriverError('null value in column "user_id"', sqlstate="23502"))
    assert is_unique_constraint_violation(error) is False


def test_sqlite_unique_message_is_unique():
    error = integrity_error(Exception("UNIQUE constraint failed: schedule_workers.schedule_id, schedule_workers.user_id"))
    assert is_unique_constraint_violation(error) is True


def test_sqlite_not_null_message_is_not_unique():
    error = integrity_error(Exception("NOT NULL constraint failed: schedule_workers.user_id"))
    assert is_unique_constraint_violation(error) is False


def test_non_integrity_errors_are_not_unique():
    assert is_unique_constraint_violation(ValueError("unique constraint")) is False
    assert is_unique_constraint_violation(
        OperationalError("SELECT 1", {}, Exception("UNIQUE constraint failed: x"))
    ) is False
