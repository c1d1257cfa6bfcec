"""
Next DC-<year>-<seq> serial, derived from the rows already stored.

No counter is kept anywhere: each call rescans dc_installations (deleted rows
included, so numbers are never reused). On PostgreSQL the scan is serialized
per year with a transaction-scoped advisory lock that is held until the
caller's INSERT commits. The unique constraint on sr_no guards every backend.
"""
from __future__ import annotations

import logging
import re
from datetime import date
from typing import Optional

from sqlalchemy import select, text
from sqlalchemy.orm import Session

from app.models.installation import Installation

logger = logging.getLogger(__name__)

SR_PREFIX = "DC"
# arbitrary namespace so the lock key never collides with other advisory locks
_LOCK_NAMESPACE = 0x44430000


def sr_prefix(year: int) -> str:
    return f"{SR_PREFIX}-{year}-"


def format_sr_no(year: int, seq: int) -> str:
    return f"{sr_prefix(year)}{seq:04d}"


def _lock_year(db: Session, year: int) -> None:
    if db.get_bind().dialect.name != "postgresql":
        return
    db.execute(text("SELECT pg_advisory_xact_lock(:k)"), {"k": _LOCK_NAMESPACE + year})


def next_sr_no(db: Session, year: Optional[int] = None) -> str:
    year = year or date.today().year
    prefix = sr_prefix(year)
    pattern = re.compile(rf"^{re.escape(prefix)}(\d+)$")

    _lock_year(db, year)

    # supplied values may carry extra zero-padding (DC-2025-00005)
    stmt = select(Installation.sr_no).where(Installation.sr_no.like(f"{prefix}%"))

    last = 0
    for sr_no in db.execute(stmt).scalars():
        m = pattern.match(sr_no)
        if m:
            last = max(last, int(m.group(1)))

    allocated = format_sr_no(year, last + 1)
    logger.debug("sr_no allocated", extra={"sr_no": allocated, "year": year})
    return allocated
