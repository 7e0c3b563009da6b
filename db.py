"""
db.py
Flat-file persistence: member records and owner credentials.

Member file, one record per line, UTF-8:
    card_id|name|gender|age|phone|join_date|membership_type|is_active|bonus_days

Every write goes to a staging file first and is then renamed over the
destination, so an interrupted save leaves the previous file intact.
"""

from __future__ import annotations

import logging
import os
import re
from datetime import date
from pathlib import Path

import lifecycle
import utils
from errors import CapacityError
from models import FIELD_DELIMITER, MembershipRecord, OwnerAccount
from store import MembershipStore

log = logging.getLogger(__name__)

MEMBER_FIELDS = 9
_DIGITS = re.compile(r"[0-9]+")


def staging_path(path: Path) -> Path:
    path = Path(path)
    return path.with_name(path.name + ".tmp")


def write_lines_atomic(path: Path, lines: list[str]) -> bool:
    """
    Write `lines` (each followed by a newline) to a staging file, fsync it,
    then rename it onto `path`. Returns False, leaving `path` untouched, if
    any step fails.
    """
    path = Path(path)
    tmp_path = staging_path(path)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp_path, "w", encoding="utf-8", newline="\n") as f:
            for line in lines:
                f.write(line + "\n")
            f.flush()
            os.fsync(f.fileno())
    except OSError as e:
        log.error("Failed to write staging file %s: %s", tmp_path, e)
        _discard(tmp_path)
        return False

    try:
        os.replace(tmp_path, path)
    except OSError as e:
        log.error("Failed to replace %s with %s: %s", path, tmp_path, e)
        _discard(tmp_path)
        return False
    return True


def _discard(tmp_path: Path) -> None:
    try:
        tmp_path.unlink(missing_ok=True)
    except OSError as e:
        log.error("Failed to remove staging file %s: %s", tmp_path, e)


def _read_lines(path: Path):
    """Yield (line_number, text) for each line that decodes as UTF-8."""
    with open(path, "rb") as f:
        for lineno, raw in enumerate(f, start=1):
            try:
                text = raw.decode("utf-8")
            except UnicodeDecodeError:
                log.warning("%s:%d skipped: not valid UTF-8", path, lineno)
                continue
            text = text.rstrip("\r\n")
            if text:
                yield lineno, text


# ---------- Members ----------

def _digits(value: str, field_name: str) -> int:
    if not _DIGITS.fullmatch(value):
        raise ValueError(f"{field_name} is not a non-negative integer: {value!r}")
    return int(value)


def parse_member_line(line: str) -> MembershipRecord:
    """
    Parse one member line, applying the same rules as creating a member.
    Raises ValueError naming the first field that fails.
    """
    parts = line.split(FIELD_DELIMITER)
    if len(parts) != MEMBER_FIELDS:
        raise ValueError(f"expected {MEMBER_FIELDS} fields, got {len(parts)}")
    card_id, name, gender, age, phone, join_date, mtype, is_active, bonus_days = parts

    card_id = _digits(card_id, "card_id")
    if card_id <= 0:
        raise ValueError("card_id must be greater than 0")
    if not utils.is_valid_name(name):
        raise ValueError(f"invalid name: {name!r}")
    if not utils.is_valid_gender(gender):
        raise ValueError(f"invalid gender: {gender!r}")
    age = _digits(age, "age")
    if not utils.is_valid_age(age):
        raise ValueError(f"age out of range: {age}")
    if not utils.is_valid_phone(phone):
        raise ValueError(f"invalid phone: {phone!r}")
    if utils.ordinal(join_date) == utils.INVALID_ORDINAL:
        raise ValueError(f"invalid join_date: {join_date!r}")
    if not utils.is_valid_membership_type(mtype):
        raise ValueError(f"unknown membership_type: {mtype!r}")
    if is_active not in ("0", "1"):
        raise ValueError(f"is_active must be 0 or 1: {is_active!r}")
    bonus_days = _digits(bonus_days, "bonus_days")

    record = MembershipRecord(
        card_id=card_id,
        name=name.strip(),
        gender=gender,
        age=age,
        phone=phone,
        join_date=utils.parse_iso(join_date),
        membership_type=mtype,
        is_active=is_active == "1",
        bonus_days=bonus_days,
    )
    if not lifecycle.within_calendar(record):
        raise ValueError("expire day falls after 9999-12-31")
    return record


def format_member_line(record: MembershipRecord) -> str:
    return FIELD_DELIMITER.join([
        str(record.card_id),
        record.name,
        record.gender,
        str(record.age),
        record.phone,
        record.join_date.isoformat(),
        record.membership_type,
        "1" if record.is_active else "0",
        str(record.bonus_days),
    ])


def load_members(path: Path, store: MembershipStore, today: date | None = None) -> int:
    """
    Replace the store's contents with the valid records in `path`.

    Malformed lines are skipped. Returns the number of records loaded; 0
    when the file is missing, unreadable, or holds nothing valid.
    """
    path = Path(path)
    if not path.exists():
        log.info("No member file at %s", path)
        return 0

    store.clear()
    loaded = 0
    skipped = 0
    max_seen = 0
    try:
        for lineno, line in _read_lines(path):
            try:
                record = parse_member_line(line)
                store.restore(record)
            except CapacityError:
                log.warning("%s:%d and later lines ignored: store capacity %d reached",
                            path, lineno, store.capacity)
                break
            except ValueError as e:
                log.warning("%s:%d skipped: %s", path, lineno, e)
                skipped += 1
                continue
            loaded += 1
            max_seen = max(max_seen, record.card_id)
    except OSError as e:
        log.error("Failed to read member file %s: %s", path, e)

    store.next_id_after_load(max_seen)
    lifecycle.sync_expirations(store, today)
    log.info("Loaded %d member(s) from %s (%d line(s) skipped)", loaded, path, skipped)
    return loaded


def save_members(path: Path, store: MembershipStore) -> bool:
    ok = write_lines_atomic(path, [format_member_line(r) for r in store])
    if ok:
        log.debug("Saved %d member(s) to %s", len(store), path)
    return ok


# ---------- Owner credentials ----------

def load_accounts(path: Path) -> dict[str, OwnerAccount]:
    """username|bcrypt_hash|force_change per line; bad lines are skipped."""
    path = Path(path)
    accounts: dict[str, OwnerAccount] = {}
    if not path.exists():
        return accounts
    try:
        for lineno, line in _read_lines(path):
            parts = line.split(FIELD_DELIMITER)
            if len(parts) != 3 or not parts[0] or not parts[1] or parts[2] not in ("0", "1"):
                log.warning("%s:%d skipped: malformed account line", path, lineno)
                continue
            accounts[parts[0]] = OwnerAccount(parts[0], parts[1], parts[2] == "1")
    except OSError as e:
        log.error("Failed to read credentials file %s: %s", path, e)
    return accounts


def save_accounts(path: Path, accounts: dict[str, OwnerAccount]) -> bool:
    lines = [
        FIELD_DELIMITER.join([a.username, a.password_hash, "1" if a.force_password_change else "0"])
        for a in accounts.values()
    ]
    return write_lines_atomic(path, lines)
