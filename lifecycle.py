"""
lifecycle.py
Expiration and renewal rules for membership records.

Every validity check (sync, renewal, remaining days) goes through posture()
or expire_day().
"""

from __future__ import annotations

import logging
from datetime import date

import utils
from errors import AlreadyInactiveError, InvalidInputError
from models import MEMBERSHIP_DAYS, MembershipRecord, Posture, RenewalOutcome

log = logging.getLogger(__name__)

_PAST_CALENDAR = "Membership would run past the last supported date (9999-12-31)."


def expire_day(record: MembershipRecord) -> int:
    """Ordinal day the record runs out: join + plan duration + bonus days."""
    return utils.ordinal(record.join_date) + utils.duration(record.membership_type) + record.bonus_days


def within_calendar(record: MembershipRecord) -> bool:
    """True when the expire day is a representable date (on or before 9999-12-31)."""
    return expire_day(record) <= utils.MAX_ORDINAL


def expire_date(record: MembershipRecord) -> date | None:
    if not within_calendar(record):
        return None
    return date.fromordinal(expire_day(record))


def posture(record: MembershipRecord, today: date | None = None) -> Posture:
    today = today or utils.today()
    if not record.is_active or expire_day(record) < utils.ordinal(today):
        return Posture.EXPIRED_OR_INACTIVE
    return Posture.ACTIVE_CURRENT


def remaining_days(record: MembershipRecord, today: date | None = None) -> int | None:
    """Days left as of `today`; None for an inactive record."""
    if not record.is_active:
        return None
    today = today or utils.today()
    return expire_day(record) - utils.ordinal(today)


def sync_expirations(records, today: date | None = None) -> int:
    """
    Flip active records whose expire day has passed to inactive.
    Never reactivates anything. Returns how many records changed.
    """
    today = today or utils.today()
    changed = 0
    for record in records:
        if record.is_active and posture(record, today) is Posture.EXPIRED_OR_INACTIVE:
            record.is_active = False
            changed += 1
    if changed:
        log.info("Marked %d membership(s) expired as of %s", changed, today.isoformat())
    return changed


def renew(record: MembershipRecord, requested_type: str, today: date | None = None) -> RenewalOutcome:
    """
    Apply a renewal request.

    - lapsed or deactivated: bought again from today, any type, bonus reset
    - still valid, same type: bonus days grow by the plan duration
    - still valid, other type: rejected, record untouched
    """
    if not utils.is_valid_membership_type(requested_type):
        raise InvalidInputError([f"Membership type must be one of: {', '.join(MEMBERSHIP_DAYS)}."])
    today = today or utils.today()
    days = utils.duration(requested_type)

    if posture(record, today) is Posture.EXPIRED_OR_INACTIVE:
        if utils.ordinal(today) + days > utils.MAX_ORDINAL:
            raise InvalidInputError([_PAST_CALENDAR])
        record.join_date = today
        record.bonus_days = 0
        record.membership_type = requested_type
        record.is_active = True
        return RenewalOutcome.REACTIVATED

    if requested_type != record.membership_type:
        log.info(
            "Renewal of %d rejected: still valid as %s, requested %s",
            record.card_id, record.membership_type, requested_type,
        )
        return RenewalOutcome.REJECTED

    if expire_day(record) + days > utils.MAX_ORDINAL:
        raise InvalidInputError([_PAST_CALENDAR])
    record.bonus_days += days
    return RenewalOutcome.EXTENDED


def deactivate(record: MembershipRecord) -> None:
    """Manual, one-way deactivation."""
    if not record.is_active:
        raise AlreadyInactiveError(record.card_id)
    record.is_active = False
