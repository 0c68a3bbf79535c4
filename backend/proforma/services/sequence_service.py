# Overview: Service-layer operations for request numbering; atomic per-year counters.

"""
Request Number Allocator

FORMAT: <PREFIX>-<ordinal zero-padded><2-digit year>
    ordinal 1 in 2025  -> OGL-00125
    ordinal 42 in 2026 -> OGL-04226

GUARANTEES:
- A number is never issued twice. The counter moves with a single
  UPDATE ... SET last_issued = last_issued + 1 WHERE year = :year, so two
  concurrent submissions can never read the same value.
- A new year starts at 1. Older counters are kept for history.
- If the counter cannot be moved, allocation fails with AllocationFailed.
  There is no fallback that derives a number from existing requests.

The increment runs inside the caller's transaction: if the request insert
is rolled back, the ordinal is rolled back with it and no gap appears.
"""

from __future__ import annotations

import re

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import RequestSequence
from ..time_utils import current_year
from .concurrency import run_with_retry


class AllocationFailed(RuntimeError):
    """The per-year counter could not be incremented atomically."""


_NUMBER_RE = re.compile(r"^(?P<prefix>[A-Z0-9]+)-(?P<ordinal>\d+)(?P<yy>\d{2})$")


def format_request_number(ordinal: int, year: int, *, prefix: str, pad: int) -> str:
    return f"{prefix}-{ordinal:0{pad}d}{year % 100:02d}"


def parse_request_number(value: str) -> tuple[str, int, int] | None:
    """'OGL-00125' -> ('OGL', 1, 25). Returns None when the value is malformed."""
    match = _NUMBER_RE.match((value or "").strip().upper())
    if not match:
        return None
    return match.group("prefix"), int(match.group("ordinal")), int(match.group("yy"))


def allocate_ordinal(year: int) -> int:
    """
    Atomically increment-and-read the counter for `year`.

    Does not commit. Must be called before anything else is added to the
    session, because a retry rolls the session back.
    """
    def _op() -> int:
        stmt = (
            update(RequestSequence)
            .where(RequestSequence.year == year)
            .values(last_issued=RequestSequence.last_issued + 1)
        )

        result = db.session.execute(stmt)
        if result.rowcount:
            return _read_last_issued(year)

        # First number of the year. A concurrent first insert loses on the
        # unique constraint and falls back to the increment.
        try:
            with db.session.begin_nested():
                db.session.add(RequestSequence(year=year, last_issued=1))
            return 1
        except IntegrityError:
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise AllocationFailed(f"Sequence row for {year} vanished during allocation")
            return _read_last_issued(year)

    try:
        return run_with_retry(_op)
    except AllocationFailed:
        raise
    except SQLAlchemyError as exc:
        current_app.logger.exception("Request number allocation failed for year %s", year)
        raise AllocationFailed(f"Could not allocate a request number for {year}") from exc


def _read_last_issued(year: int) -> int:
    return (
        db.session.query(RequestSequence.last_issued)
        .filter(RequestSequence.year == year)
        .scalar()
    )


def next_request_number(year: int | None = None) -> str:
    """
    Mint the next request number for `year` (default: current UTC year).

    Raises:
        AllocationFailed: storage unavailable or counter update failed
    """
    if year is None:
        year = current_year()

    ordinal = allocate_ordinal(year)
    return format_request_number(
        ordinal,
        year,
        prefix=current_app.config.get("REQUEST_NUMBER_PREFIX", "OGL"),
        pad=current_app.config.get("REQUEST_NUMBER_PAD", 3),
    )


def list_sequences() -> list[RequestSequence]:
    return db.session.query(RequestSequence).order_by(RequestSequence.year.desc()).all()
