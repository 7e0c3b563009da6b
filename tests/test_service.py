"""Tests for the membership operations and write-through persistence."""

import threading
from datetime import date

import pytest

import db
from config import Settings
from errors import (
    AlreadyInactiveError,
    CapacityError,
    InvalidInputError,
    MemberNotFoundError,
    MemberStillActiveError,
)
from models import RenewalOutcome
from service import MembershipService
from store import MembershipStore

JAN1 = date(2025, 1, 1)


def add_alice(service, membership_type="monthly", today=JAN1):
    return service.add("Alice", "female", 30, "13800138000", membership_type, today=today).record


def file_lines(path):
    return path.read_text(encoding="utf-8").splitlines()


class TestAdd:
    def test_add_creates_active_record_and_saves(self, service, data_file):
        result = service.add("  Alice  ", "female", 30, "13800138000", "monthly", today=JAN1)
        record = result.record
        assert result.saved is True
        assert record.card_id == 1001
        assert record.name == "Alice"
        assert record.join_date == JAN1
        assert record.is_active is True
        assert record.bonus_days == 0
        assert file_lines(data_file) == ["1001|Alice|female|30|13800138000|2025-01-01|monthly|1|0"]

    def test_validation_error_leaves_store_unchanged(self, service, data_file):
        with pytest.raises(InvalidInputError) as exc:
            service.add("Alice", "female", 15, "123", "weekly", today=JAN1)
        assert len(exc.value.errors) == 3
        assert len(service.store) == 0
        assert not data_file.exists()

    def test_capacity(self, data_file):
        service = MembershipService(MembershipStore(capacity=1), data_file)
        add_alice(service)
        with pytest.raises(CapacityError):
            add_alice(service)
        assert len(service.store) == 1

    def test_save_failure_keeps_change_in_memory(self, service, monkeypatch):
        """A failed write is reported, the record stays in memory, and save() can retry."""
        monkeypatch.setattr(db, "save_members", lambda path, store: False)
        result = service.add("Alice", "female", 30, "13800138000", "monthly", today=JAN1)
        assert result.saved is False
        assert result.record.card_id in service.store
        monkeypatch.undo()
        assert service.save() is True

    def test_trailing_newline_phone_rejected(self, service, data_file):
        """A phone with a line break would split the record on disk."""
        with pytest.raises(InvalidInputError):
            service.add("Alice", "female", 30, "13800138000\n", "monthly", today=JAN1)
        assert len(service.store) == 0

    def test_added_member_survives_reload(self, service, data_file):
        add_alice(service)
        restarted = MembershipService(MembershipStore(), data_file)
        assert restarted.bootstrap(seed_sample=False, today=JAN1) == 1

    def test_join_past_calendar_refused(self, service):
        with pytest.raises(InvalidInputError):
            add_alice(service, membership_type="yearly", today=date(9999, 12, 31))
        assert len(service.store) == 0


class TestUpdatePhone:
    def test_updates_only_phone(self, service, data_file):
        record = add_alice(service)
        result = service.update_phone(record.card_id, "13912345678")
        assert result.saved is True
        assert record.phone == "13912345678"
        assert "13912345678" in data_file.read_text(encoding="utf-8")

    def test_invalid_phone(self, service):
        record = add_alice(service)
        with pytest.raises(InvalidInputError):
            service.update_phone(record.card_id, "12345")
        assert record.phone == "13800138000"

    def test_trailing_newline_rejected(self, service, data_file):
        record = add_alice(service)
        with pytest.raises(InvalidInputError):
            service.update_phone(record.card_id, "13912345678\n")
        assert record.phone == "13800138000"
        restarted = MembershipService(MembershipStore(), data_file)
        assert restarted.bootstrap(seed_sample=False, today=JAN1) == 1

    def test_not_found(self, service):
        with pytest.raises(MemberNotFoundError):
            service.update_phone(4242, "13912345678")


class TestDelete:
    def test_active_member_cannot_be_deleted(self, service):
        """Delete is refused for any active record, whatever its remaining days."""
        record = add_alice(service)
        with pytest.raises(MemberStillActiveError):
            service.delete(record.card_id, today=JAN1)
        assert record.card_id in service.store

    def test_expired_member_deleted(self, service, data_file):
        record = add_alice(service)
        result = service.delete(record.card_id, today=date(2025, 3, 1))
        assert result.saved is True
        assert record.card_id not in service.store
        assert file_lines(data_file) == []

    def test_deactivated_member_deleted(self, service):
        record = add_alice(service)
        service.deactivate(record.card_id)
        service.delete(record.card_id, today=JAN1)
        assert len(service.store) == 0

    def test_not_found(self, service):
        with pytest.raises(MemberNotFoundError):
            service.delete(4242, today=JAN1)


class TestRenew:
    def test_extend_same_type(self, service, data_file):
        record = add_alice(service)
        result = service.renew(record.card_id, "monthly", today=date(2025, 1, 10))
        assert result.outcome is RenewalOutcome.EXTENDED
        assert record.bonus_days == 30
        assert file_lines(data_file)[0].endswith("|monthly|1|30")

    def test_reject_type_change(self, service, data_file):
        record = add_alice(service)
        before = data_file.read_text(encoding="utf-8")
        result = service.renew(record.card_id, "yearly", today=date(2025, 1, 10))
        assert result.outcome is RenewalOutcome.REJECTED
        assert record.membership_type == "monthly"
        assert data_file.read_text(encoding="utf-8") == before

    def test_reactivate_after_expiry(self, service):
        record = add_alice(service)
        result = service.renew(record.card_id, "quarterly", today=date(2025, 6, 1))
        assert result.outcome is RenewalOutcome.REACTIVATED
        assert record.join_date == date(2025, 6, 1)
        assert record.membership_type == "quarterly"
        assert record.is_active is True

    def test_not_found(self, service):
        with pytest.raises(MemberNotFoundError):
            service.renew(4242, "monthly", today=JAN1)


class TestDeactivate:
    def test_deactivate_once(self, service, data_file):
        record = add_alice(service)
        service.deactivate(record.card_id)
        assert record.is_active is False
        assert file_lines(data_file)[0].endswith("|0|0")
        with pytest.raises(AlreadyInactiveError):
            service.deactivate(record.card_id)

    def test_not_found(self, service):
        with pytest.raises(MemberNotFoundError):
            service.deactivate(4242)


class TestReads:
    def test_list_syncs_and_computes_remaining(self, service, data_file):
        a = add_alice(service)
        b = service.add("Bob", "male", 40, "13912345678", "yearly", today=JAN1).record
        views = service.list_members(today=date(2025, 2, 1))
        assert [v.record.card_id for v in views] == [a.card_id, b.card_id]
        assert views[0].remaining_days is None
        assert views[0].record.is_active is False
        assert views[1].remaining_days == 365 - 31
        assert views[1].expire_date == date(2026, 1, 1)
        # the sync result was written through
        assert file_lines(data_file)[0].endswith("|monthly|0|0")

    def test_find_by_id(self, service):
        record = add_alice(service)
        view = service.find_by_id(record.card_id, today=date(2025, 1, 11))
        assert view.remaining_days == 20
        assert service.find_by_id(4242, today=JAN1) is None
        with pytest.raises(MemberNotFoundError):
            service.get_by_id(4242, today=JAN1)

    def test_find_by_name_substring(self, service):
        add_alice(service)
        service.add("Alicia", "female", 22, "13912345678", "yearly", today=JAN1)
        service.add("Bob", "male", 40, "13912345679", "yearly", today=JAN1)
        names = [v.record.name for v in service.find_by_name("Ali", today=JAN1)]
        assert names == ["Alice", "Alicia"]
        assert service.find_by_name("zzz", today=JAN1) == []
        assert service.find_by_name("", today=JAN1) == []

    def test_statistics(self, service):
        add_alice(service)                                            # 30 days left on JAN1
        service.add("Bob", "male", 40, "13912345678", "yearly", today=JAN1)
        service.add("Cat", "female", 50, "13912345679", "quarterly", today=JAN1)
        old = service.add("Dan", "male", 60, "13912345670", "monthly", today=JAN1).record
        service.deactivate(old.card_id)

        stats = service.statistics(today=JAN1)

        assert stats.total == 4
        assert stats.active == 3
        assert stats.by_type == {"monthly": 1, "quarterly": 1, "yearly": 1}
        assert stats.share_by_type["yearly"] == pytest.approx(100 / 3)
        assert [v.record.name for v in stats.expiring_soon] == ["Alice"]

    def test_reads_survive_expiry_past_calendar(self, service, make_record):
        """A record whose expiry is not a real date still lists without an expire date."""
        service.store.restore(make_record(card_id=1001, bonus_days=99_999_999))
        views = service.list_members(today=JAN1)
        assert views[0].expire_date is None
        assert views[0].remaining_days == 30 + 99_999_999
        assert service.find_by_id(1001, today=JAN1).expire_date is None
        assert [v.record.card_id for v in service.find_by_name("Ali", today=JAN1)] == [1001]
        assert service.statistics(today=JAN1).active == 1

    def test_statistics_empty(self, service):
        stats = service.statistics(today=JAN1)
        assert stats.active == 0
        assert stats.share_by_type == {"monthly": 0.0, "quarterly": 0.0, "yearly": 0.0}
        assert stats.expiring_soon == []


class TestBootstrap:
    def test_loads_existing_file(self, service, data_file):
        data_file.write_text("1500|Eve|female|33|13800138000|2025-01-01|yearly|1|0\n", encoding="utf-8")
        assert service.bootstrap(today=JAN1) == 1
        assert add_alice(service).card_id == 1501

    def test_seeds_sample_data_when_empty(self, service, data_file):
        assert service.bootstrap(today=JAN1) == 0
        assert len(service.store) == 4
        assert len(file_lines(data_file)) == 4
        assert add_alice(service).card_id == 1005

    def test_no_seed(self, service, data_file):
        assert service.bootstrap(seed_sample=False, today=JAN1) == 0
        assert len(service.store) == 0

    def test_shutdown_saves(self, service, data_file):
        add_alice(service)
        data_file.unlink()
        assert service.shutdown() is True
        assert len(file_lines(data_file)) == 1

    def test_restart_round_trip(self, service, data_file):
        add_alice(service)
        service.add("Bob", "male", 40, "13912345678", "yearly", today=JAN1)
        restarted = MembershipService(MembershipStore(), data_file)
        assert restarted.bootstrap(today=JAN1) == 2
        assert [r.name for r in restarted.store] == ["Alice", "Bob"]

    def test_from_settings(self, tmp_path):
        settings = Settings(DATA_FILE=tmp_path / "m.txt", MAX_MEMBERS=5)
        service = MembershipService.from_settings(settings)
        assert service.store.capacity == 5
        assert service.data_file == tmp_path / "m.txt"


class TestConcurrentSaves:
    def test_parallel_saves_all_succeed(self, service, data_file):
        """Saves from several threads never trip over a shared staging file."""
        add_alice(service)
        results = []

        def worker():
            for _ in range(25):
                results.append(service.save())

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results == [True] * 100
        assert len(file_lines(data_file)) == 1
        assert not db.staging_path(data_file).exists()
