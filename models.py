"""
models.py
Lightweight domain helpers (membership types, dataclasses, enums).
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date
from enum import Enum

# Membership durations in days (used for expire day calculation)
MEMBERSHIP_DAYS = {
    "monthly": 30,
    "quarterly": 90,
    "yearly": 365,
}

GENDERS = ("male", "female")

MIN_AGE = 18
MAX_AGE = 80
PHONE_LENGTH = 11
MAX_NAME_LENGTH = 30

FIELD_DELIMITER = "|"


@dataclass
class MembershipRecord:
    card_id: int
    name: str
    gender: str
    age: int
    phone: str
    join_date: date
    membership_type: str
    is_active: bool = True
    bonus_days: int = 0


class Posture(str, Enum):
    """Validity of a record relative to a given day; derived, never stored."""

    ACTIVE_CURRENT = "active-current"
    EXPIRED_OR_INACTIVE = "expired-or-inactive"


class RenewalOutcome(str, Enum):
    REACTIVATED = "reactivated"  # lapsed record bought again from today
    EXTENDED = "extended"  # same-type top-up, bonus days added
    REJECTED = "rejected"  # type change on a still-valid record


@dataclass(frozen=True)
class MemberView:
    record: MembershipRecord
    remaining_days: int | None  # None when inactive
    expire_date: date | None


@dataclass(frozen=True)
class ChangeResult:
    record: MembershipRecord | None
    saved: bool
    outcome: RenewalOutcome | None = None


@dataclass(frozen=True)
class Statistics:
    total: int
    active: int
    by_type: dict[str, int] = field(default_factory=dict)
    share_by_type: dict[str, float] = field(default_factory=dict)  # percent of active
    expiring_soon: list[MemberView] = field(default_factory=list)


@dataclass
class OwnerAccount:
    username: str
    password_hash: str
    force_password_change: bool = False
