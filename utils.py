"""
utils.py
Calendar arithmetic, validation, exports, sample data.
"""

from __future__ import annotations

import re
from datetime import date, timedelta

import pandas as pd

from models import (
    FIELD_DELIMITER,
    GENDERS,
    MAX_AGE,
    MAX_NAME_LENGTH,
    MEMBERSHIP_DAYS,
    MIN_AGE,
    PHONE_LENGTH,
    MembershipRecord,
)

INVALID_ORDINAL = 0
MAX_ORDINAL = date.max.toordinal()

_ISO_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")
_PHONE = re.compile(r"[0-9]{%d}" % PHONE_LENGTH)


def today() -> date:
    return date.today()


def today_iso() -> str:
    return today().isoformat()


def parse_iso(d: str) -> date:
    """
    Strict YYYY-MM-DD parse. Raises ValueError for any other shape or for a
    date that does not exist (e.g. 2023-02-29).
    """
    if not isinstance(d, str) or not _ISO_DATE.fullmatch(d):
        raise ValueError(f"not a YYYY-MM-DD date: {d!r}")
    return date.fromisoformat(d)


def ordinal(value: date | str) -> int:
    """
    Map a calendar date onto a day count where subtracting two ordinals gives
    the true number of days between them (Gregorian leap years included).

    Returns INVALID_ORDINAL (0) instead of raising for an unparseable string
    or an impossible date; callers reject the record in that case.
    """
    if isinstance(value, date):
        return value.toordinal()
    try:
        return parse_iso(value).toordinal()
    except ValueError:
        return INVALID_ORDINAL


def duration(membership_type: str) -> int:
    """Validity in days for a membership type, 0 when the type is unknown."""
    return MEMBERSHIP_DAYS.get(membership_type, 0)


# ---------- Field validators ----------

def is_valid_name(name) -> bool:
    if not isinstance(name, str):
        return False
    name = name.strip()
    if not name or len(name) > MAX_NAME_LENGTH:
        return False
    return not any(ch in name for ch in (FIELD_DELIMITER, "\r", "\n"))


def is_valid_gender(gender) -> bool:
    return gender in GENDERS


def is_valid_age(age) -> bool:
    if isinstance(age, bool) or not isinstance(age, int):
        return False
    return MIN_AGE <= age <= MAX_AGE


def is_valid_phone(phone) -> bool:
    return isinstance(phone, str) and bool(_PHONE.fullmatch(phone))


def is_valid_membership_type(membership_type) -> bool:
    return duration(membership_type) > 0


def validate_member_inputs(name, gender, age, phone, membership_type) -> list[str]:
    errors: list[str] = []
    if not is_valid_name(name):
        errors.append(
            f"Name is required, at most {MAX_NAME_LENGTH} characters, without '{FIELD_DELIMITER}' or line breaks."
        )
    if not is_valid_gender(gender):
        errors.append(f"Gender must be one of: {', '.join(GENDERS)}.")
    if not is_valid_age(age):
        errors.append(f"Age must be a whole number between {MIN_AGE} and {MAX_AGE}.")
    if not is_valid_phone(phone):
        errors.append(f"Phone must be exactly {PHONE_LENGTH} digits.")
    if not is_valid_membership_type(membership_type):
        errors.append(f"Membership type must be one of: {', '.join(MEMBERSHIP_DAYS)}.")
    return errors


# ---------- Exports ----------

MEMBER_COLUMNS = [
    "card_id", "name", "gender", "age", "phone", "join_date",
    "membership_type", "status", "bonus_days", "expire_date", "remaining_days",
]


def members_to_frame(views) -> pd.DataFrame:
    rows = []
    for v in views:
        r = v.record
        rows.append({
            "card_id": r.card_id,
            "name": r.name,
            "gender": r.gender,
            "age": r.age,
            "phone": r.phone,
            "join_date": r.join_date.isoformat(),
            "membership_type": r.membership_type,
            "status": "active" if r.is_active else "expired",
            "bonus_days": r.bonus_days,
            "expire_date": v.expire_date.isoformat() if v.expire_date else None,
            "remaining_days": v.remaining_days,
        })
    if not rows:
        return pd.DataFrame(columns=MEMBER_COLUMNS)
    return pd.DataFrame(rows, columns=MEMBER_COLUMNS)


def members_to_csv_bytes(views) -> bytes:
    return members_to_frame(views).to_csv(index=False).encode("utf-8")


# ---------- Sample data ----------

def sample_members(on: date | None = None) -> list[MembershipRecord]:
    """
    Four demo members: a fresh yearly, a long-lapsed monthly, a recent
    monthly and a quarterly close to expiring.
    """
    on = on or today()
    return [
        MembershipRecord(1001, "Zhang San", "male", 25, "13800138000",
                         on - timedelta(days=60), "yearly", True, 0),
        MembershipRecord(1002, "Li Si", "female", 30, "13912345678",
                         on - timedelta(days=400), "monthly", False, 0),
        MembershipRecord(1003, "Wang Wu", "male", 45, "13666666666",
                         on - timedelta(days=10), "monthly", True, 0),
        MembershipRecord(1004, "Zhao Liu", "female", 22, "13777777777",
                         on - timedelta(days=75), "quarterly", True, 0),
    ]
