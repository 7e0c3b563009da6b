"""
service.py
Membership operations used by the screens. Every change that alters stored
state is written through to the member file immediately.
"""

from __future__ import annotations

import logging
import threading
from datetime import date
from pathlib import Path

import db
import lifecycle
import utils
from config import Settings, get_settings
from errors import InvalidInputError, MemberNotFoundError
from models import (
    MEMBERSHIP_DAYS,
    ChangeResult,
    MembershipRecord,
    MemberView,
    RenewalOutcome,
    Statistics,
)
from store import MembershipStore

log = logging.getLogger(__name__)

DEFAULT_WARNING_DAYS = 30


class MembershipService:
    def __init__(self, store: MembershipStore, data_file: Path):
        self.store = store
        self.data_file = Path(data_file)
        # Streamlit sessions share one service across threads.
        self._save_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "MembershipService":
        settings = settings or get_settings()
        return cls(MembershipStore(capacity=settings.MAX_MEMBERS), settings.DATA_FILE)

    # ---------- Persistence ----------

    def bootstrap(self, seed_sample: bool = True, today: date | None = None) -> int:
        """Load the member file; seed demo members when nothing valid was found."""
        loaded = db.load_members(self.data_file, self.store, today)
        if loaded > 0 or not seed_sample:
            return loaded

        log.info("No valid member data in %s; seeding sample members", self.data_file)
        self.store.clear()
        max_seen = 0
        for record in utils.sample_members(today):
            if self.store.is_full:
                break
            self.store.restore(record)
            max_seen = max(max_seen, record.card_id)
        self.store.next_id_after_load(max_seen)
        lifecycle.sync_expirations(self.store, today)
        self.save()
        return 0

    def save(self) -> bool:
        with self._save_lock:
            ok = db.save_members(self.data_file, self.store)
        if not ok:
            log.error("Changes kept in memory but not saved to %s", self.data_file)
        return ok

    def shutdown(self) -> bool:
        return self.save()

    def sync(self, today: date | None = None) -> int:
        changed = lifecycle.sync_expirations(self.store, today)
        if changed:
            self.save()
        return changed

    # ---------- Mutations ----------

    def add(self, name, gender, age, phone, membership_type, today: date | None = None) -> ChangeResult:
        errors = utils.validate_member_inputs(name, gender, age, phone, membership_type)
        if errors:
            raise InvalidInputError(errors)
        record = MembershipRecord(
            card_id=0,
            name=name.strip(),
            gender=gender,
            age=age,
            phone=phone,
            join_date=today or utils.today(),
            membership_type=membership_type,
        )
        if not lifecycle.within_calendar(record):
            raise InvalidInputError(["Membership would run past the last supported date (9999-12-31)."])
        self.store.insert(record)
        log.info("Added member %d (%s)", record.card_id, membership_type)
        return ChangeResult(record, self.save())

    def update_phone(self, card_id: int, phone: str) -> ChangeResult:
        record = self.store.get(card_id)
        if not utils.is_valid_phone(phone):
            raise InvalidInputError(["Phone must be exactly 11 digits."])
        record.phone = phone
        return ChangeResult(record, self.save())

    def delete(self, card_id: int, today: date | None = None) -> ChangeResult:
        self.sync(today)
        record = self.store.remove(card_id)
        log.info("Deleted member %d", card_id)
        return ChangeResult(record, self.save())

    def renew(self, card_id: int, membership_type: str, today: date | None = None) -> ChangeResult:
        self.sync(today)
        record = self.store.get(card_id)
        outcome = lifecycle.renew(record, membership_type, today)
        if outcome is RenewalOutcome.REJECTED:
            return ChangeResult(record, True, outcome)
        log.info("Renewed member %d: %s", card_id, outcome.value)
        return ChangeResult(record, self.save(), outcome)

    def deactivate(self, card_id: int) -> ChangeResult:
        record = self.store.get(card_id)
        lifecycle.deactivate(record)
        log.info("Deactivated member %d", card_id)
        return ChangeResult(record, self.save())

    # ---------- Reads ----------

    def _view(self, record: MembershipRecord, today: date) -> MemberView:
        return MemberView(
            record=record,
            remaining_days=lifecycle.remaining_days(record, today),
            expire_date=lifecycle.expire_date(record) if record.is_active else None,
        )

    def list_members(self, today: date | None = None) -> list[MemberView]:
        today = today or utils.today()
        self.sync(today)
        return [self._view(r, today) for r in self.store]

    def find_by_id(self, card_id: int, today: date | None = None) -> MemberView | None:
        today = today or utils.today()
        self.sync(today)
        record = self.store.find(card_id)
        return self._view(record, today) if record else None

    def get_by_id(self, card_id: int, today: date | None = None) -> MemberView:
        view = self.find_by_id(card_id, today)
        if view is None:
            raise MemberNotFoundError(card_id)
        return view

    def find_by_name(self, fragment: str, today: date | None = None) -> list[MemberView]:
        today = today or utils.today()
        self.sync(today)
        fragment = (fragment or "").strip()
        if not fragment:
            return []
        return [self._view(r, today) for r in self.store if fragment in r.name]

    def statistics(self, today: date | None = None, window: int = DEFAULT_WARNING_DAYS) -> Statistics:
        today = today or utils.today()
        views = self.list_members(today)
        active = [v for v in views if v.record.is_active]
        by_type = {t: 0 for t in MEMBERSHIP_DAYS}
        for v in active:
            by_type[v.record.membership_type] += 1
        share = {
            t: (count / len(active) * 100 if active else 0.0)
            for t, count in by_type.items()
        }
        expiring = sorted(
            (v for v in active if 0 <= v.remaining_days <= window),
            key=lambda v: (v.remaining_days, v.record.card_id),
        )
        return Statistics(
            total=len(views),
            active=len(active),
            by_type=by_type,
            share_by_type=share,
            expiring_soon=expiring,
        )
