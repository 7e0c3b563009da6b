"""
auth.py
Owner authentication (bcrypt hashing, verify, login, change password).

Accounts live in a small flat file written the same crash-safe way as the
member file.
"""

from __future__ import annotations

import logging
from pathlib import Path

import bcrypt

import db
from models import OwnerAccount

log = logging.getLogger(__name__)

DEFAULT_USERNAME = "admin"
MIN_PASSWORD_LENGTH = 6
BCRYPT_MAX_BYTES = 72


def _to_bcrypt_secret(password: str) -> bytes:
    """UTF-8 bytes of an owner password, cut to the 72 bytes bcrypt hashes."""
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str, rounds: int = 12) -> str:
    secret = _to_bcrypt_secret(password)
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(secret, salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    secret = _to_bcrypt_secret(password)
    try:
        return bcrypt.checkpw(secret, password_hash.encode("utf-8"))
    except ValueError:
        # Not a bcrypt hash (hand-edited credentials file).
        return False


def init_credentials(path: Path, default_password: str, rounds: int = 12) -> bool:
    """
    Create the default owner account (forced to change password on first
    login) when no account exists yet. Returns True if one was created.
    """
    if db.load_accounts(path):
        return False
    account = OwnerAccount(DEFAULT_USERNAME, hash_password(default_password, rounds), True)
    if not db.save_accounts(path, {account.username: account}):
        raise OSError(f"could not write credentials file {path}")
    log.info("Created default owner account %r", DEFAULT_USERNAME)
    return True


def get_account(path: Path, username: str) -> OwnerAccount | None:
    return db.load_accounts(path).get(username)


def login(path: Path, username: str, password: str) -> bool:
    account = get_account(path, username)
    if not account:
        return False
    return verify_password(password, account.password_hash)


def validate_new_password(new1: str, new2: str) -> list[str]:
    errors: list[str] = []
    if len(new1) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    if new1 != new2:
        errors.append("Passwords do not match.")
    return errors


def change_password(path: Path, username: str, new_password: str, rounds: int = 12) -> bool:
    accounts = db.load_accounts(path)
    if username not in accounts:
        raise KeyError(username)
    accounts[username] = OwnerAccount(username, hash_password(new_password, rounds), False)
    return db.save_accounts(path, accounts)


def is_force_password_change(path: Path, username: str) -> bool:
    account = get_account(path, username)
    return bool(account and account.force_password_change)
