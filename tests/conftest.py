"""Shared fixtures for membership tests."""

from datetime import date

import pytest

from models import MembershipRecord
from service import MembershipService
from store import MembershipStore


@pytest.fixture
def data_file(tmp_path):
    return tmp_path / "members.txt"


@pytest.fixture
def store():
    return MembershipStore(capacity=10)


@pytest.fixture
def service(store, data_file):
    return MembershipService(store, data_file)


@pytest.fixture
def make_record():
    def _make(card_id=1001, name="Alice", gender="female", age=30, phone="13800138000",
              join_date=date(2025, 1, 1), membership_type="monthly", is_active=True, bonus_days=0):
        return MembershipRecord(card_id, name, gender, age, phone, join_date,
                                membership_type, is_active, bonus_days)
    return _make
