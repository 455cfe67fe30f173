"""
Tests for the SQLite booking store.

Uses the seeded temporary database from conftest.
"""

import os
import tempfile

import pytest
from conftest import ARABIC, NOW, PERSIAN, assign, insert_job

from db.booking_store import BookingStore, resolve_db_path
from models.errors import ErrorCode, ToolError
from utils.datetime_helpers import format_ts

TS = format_ts(NOW)


class TestConnection:
    def test_missing_database_raises_db_not_found(self, tmp_path):
        with pytest.raises(ToolError) as exc_info:
            with BookingStore(str(tmp_path / "missing.db")):
                pass
        assert exc_info.value.code == ErrorCode.DB_NOT_FOUND

    def test_create_builds_parent_directories(self, tmp_path):
        path = tmp_path / "nested" / "booking.db"
        with BookingStore(str(path), create=True) as store:
            store.ensure_schema()
            store.commit()
        assert path.exists()

    def test_uncommitted_work_is_rolled_back(self, seeded_db):
        with BookingStore(seeded_db.db_path) as store:
            store.create_language("Somaliska")

        with BookingStore(seeded_db.db_path) as store:
            assert store.get_language_name(3) == "3"

    def test_commit_keeps_store_usable(self, seeded_db):
        with BookingStore(seeded_db.db_path) as store:
            lang_id = store.create_language("Somaliska")
            store.commit()
            store.create_language("Tigrinja")
            store.commit()

        with BookingStore(seeded_db.db_path) as store:
            assert store.get_language_name(lang_id) == "Somaliska"
            assert store.get_language_name(lang_id + 1) == "Tigrinja"

    def test_commit_without_next_transaction_releases_lock(self, seeded_db):
        with BookingStore(seeded_db.db_path) as store:
            lang_id = store.create_language("Somaliska")
            store.commit(begin_next=False)

            # A second writer can begin while this store is still open
            with BookingStore(seeded_db.db_path) as second:
                assert second.get_language_name(lang_id) == "Somaliska"

            assert store.get_language_name(lang_id) == "Somaliska"

    def test_resolve_db_path_override(self):
        assert str(resolve_db_path("/tmp/other.db")) == "/tmp/other.db"


class TestJobs:
    def test_require_job_not_found(self, seeded_db):
        with BookingStore(seeded_db.db_path) as store:
            with pytest.raises(ToolError) as exc_info:
                store.require_job(999)
        assert exc_info.value.code == ErrorCode.NOT_FOUND

    def test_update_unknown_column_is_validation_error(self, seeded_db):
        job_id = insert_job(seeded_db.db_path, seeded_db.customer_id)
        with BookingStore(seeded_db.db_path) as store:
            with pytest.raises(ToolError) as exc_info:
                store.update_job(job_id, {"not_a_column": 1})
        assert exc_info.value.code == ErrorCode.VALIDATION_ERROR
        assert exc_info.value.field == "not_a_column"

    def test_update_missing_job_is_not_found(self, seeded_db):
        with BookingStore(seeded_db.db_path) as store:
            with pytest.raises(ToolError) as exc_info:
                store.update_job(999, {"status": "assigned"})
        assert exc_info.value.code == ErrorCode.NOT_FOUND

    def test_find_jobs_filters_and_order(self, seeded_db):
        path = seeded_db.db_path
        late = insert_job(path, seeded_db.customer_id, due="2026-03-09 10:00:00")
        early = insert_job(path, seeded_db.customer_id, due="2026-03-03 10:00:00")
        insert_job(path, seeded_db.customer_id, from_language_id=PERSIAN)
        insert_job(path, seeded_db.customer_id, status="completed")

        with BookingStore(path) as store:
            jobs = store.find_jobs(status="pending", from_language_id=ARABIC)
            assert [job.id for job in jobs] == [early, late]

            assert store.find_jobs(status=[]) == []
            assert len(store.find_jobs(status=("pending", "completed"))) == 4
            assert store.find_jobs(withdraw_at=None, id=late)[0].id == late

    def test_find_jobs_rejects_unknown_order(self, seeded_db):
        with BookingStore(seeded_db.db_path) as store:
            with pytest.raises(ToolError) as exc_info:
                store.find_jobs(order_by="due; DROP TABLE jobs")
        assert exc_info.value.field == "order_by"

    def test_set_job_flag(self, seeded_db):
        job_id = insert_job(seeded_db.db_path, seeded_db.customer_id)
        with BookingStore(seeded_db.db_path) as store:
            store.set_job_flag(job_id, "ignore_expired")
            assert store.require_job(job_id).ignore_expired == 1
            with pytest.raises(ToolError):
                store.set_job_flag(job_id, "status")


class TestClaimAndAssignments:
    def test_claim_pending_job(self, seeded_db):
        job_id = insert_job(seeded_db.db_path, seeded_db.customer_id)
        with BookingStore(seeded_db.db_path) as store:
            assert store.claim_job(job_id, seeded_db.certified_translator_id, TS) is True
            job = store.require_job(job_id)
            active = store.get_active_assignment(job_id)

        assert job.status == "assigned"
        assert active.user_id == seeded_db.certified_translator_id
        assert active.created_at == TS

    def test_second_claim_loses(self, seeded_db):
        job_id = insert_job(seeded_db.db_path, seeded_db.customer_id)
        with BookingStore(seeded_db.db_path) as store:
            assert store.claim_job(job_id, seeded_db.certified_translator_id, TS) is True
            assert store.claim_job(job_id, seeded_db.layman_translator_id, TS) is False
            assert len(store.list_assignments(job_id)) == 1

    def test_claim_refuses_pending_job_with_active_assignment(self, seeded_db):
        job_id = insert_job(seeded_db.db_path, seeded_db.customer_id)
        with BookingStore(seeded_db.db_path) as store:
            store.create_assignment(job_id, seeded_db.layman_translator_id, TS, will_expire_at=TS)
            assert store.claim_job(job_id, seeded_db.certified_translator_id, TS) is False

    def test_cancelled_placeholder_does_not_block_claim(self, seeded_db):
        """Reopening records an already-cancelled row; the job stays claimable."""
        job_id = insert_job(seeded_db.db_path, seeded_db.customer_id)
        with BookingStore(seeded_db.db_path) as store:
            store.create_assignment(job_id, seeded_db.layman_translator_id, TS, cancel_at=TS)
            assert store.claim_job(job_id, seeded_db.certified_translator_id, TS) is True
            assert len(store.list_assignments(job_id)) == 2

    def test_second_active_assignment_is_conflict(self, seeded_db):
        job_id = insert_job(seeded_db.db_path, seeded_db.customer_id)
        assign(seeded_db.db_path, job_id, seeded_db.certified_translator_id)

        with BookingStore(seeded_db.db_path) as store:
            with pytest.raises(ToolError) as exc_info:
                store.create_assignment(job_id, seeded_db.layman_translator_id, TS)
        assert exc_info.value.code == ErrorCode.CONFLICT

    def test_cancelled_assignment_frees_the_job(self, seeded_db):
        job_id = insert_job(seeded_db.db_path, seeded_db.customer_id)
        assign(seeded_db.db_path, job_id, seeded_db.certified_translator_id)

        with BookingStore(seeded_db.db_path) as store:
            assert store.cancel_active_assignments(job_id, TS) == 1
            store.create_assignment(job_id, seeded_db.layman_translator_id, TS)
            assignments = store.list_assignments(job_id)

        assert [a.cancel_at for a in assignments] == [TS, None]

    def test_current_assignment_falls_back_to_completed(self, seeded_db):
        job_id = insert_job(seeded_db.db_path, seeded_db.customer_id)
        assignment_id = assign(seeded_db.db_path, job_id, seeded_db.certified_translator_id)

        with BookingStore(seeded_db.db_path) as store:
            store.complete_assignment(assignment_id, TS, seeded_db.customer_id)
            assert store.get_active_assignment(job_id) is None
            current = store.get_current_assignment(job_id)

        assert current.id == assignment_id
        assert current.completed_by == seeded_db.customer_id

    def test_active_jobs_for_translator(self, seeded_db):
        path = seeded_db.db_path
        held = insert_job(path, seeded_db.customer_id)
        assign(path, held, seeded_db.certified_translator_id, status="started")
        done = insert_job(path, seeded_db.customer_id)
        assign(path, done, seeded_db.certified_translator_id, status="completed")

        with BookingStore(path) as store:
            jobs = store.find_active_jobs_for_translator(seeded_db.certified_translator_id)
        assert [job.id for job in jobs] == [held]


class TestUsersAndLookups:
    def test_find_active_translators_excludes_user(self, seeded_db):
        with BookingStore(seeded_db.db_path) as store:
            ids = {u.id for u in store.find_active_translators(seeded_db.layman_translator_id)}
        assert ids == {seeded_db.certified_translator_id, seeded_db.volunteer_translator_id}

    def test_blacklist(self, seeded_db):
        with BookingStore(seeded_db.db_path) as store:
            store.add_to_blacklist(seeded_db.customer_id, seeded_db.layman_translator_id)
            store.add_to_blacklist(seeded_db.customer_id, seeded_db.layman_translator_id)
            assert store.get_blacklisted_translator_ids(seeded_db.customer_id) == {
                seeded_db.layman_translator_id
            }
            assert store.get_blacklisted_translator_ids(seeded_db.other_customer_id) == set()

    def test_find_user_by_email(self, seeded_db):
        with BookingStore(seeded_db.db_path) as store:
            user = store.find_user_by_email("certified@example.com")
            assert user.id == seeded_db.certified_translator_id
            assert store.find_user_by_email("nobody@example.com") is None

    def test_language_name_fallback(self, seeded_db):
        with BookingStore(seeded_db.db_path) as store:
            assert store.get_language_name(ARABIC) == "Arabiska"
            assert store.get_language_name(77) == "77"

    def test_distance_upsert(self, seeded_db):
        job_id = insert_job(seeded_db.db_path, seeded_db.customer_id)
        with BookingStore(seeded_db.db_path) as store:
            store.update_distance(job_id, "12 km", "20 min")
            store.update_distance(job_id, "14 km", "25 min")
            row = store.get_distance(job_id)
        assert (row["distance"], row["time"]) == ("14 km", "25 min")

    def test_throttle_ignore(self, seeded_db):
        with BookingStore(seeded_db.db_path) as store:
            throttle_id = store.create_throttle(seeded_db.customer_id)
            store.set_throttle_ignored(throttle_id)
            with pytest.raises(ToolError) as exc_info:
                store.set_throttle_ignored(throttle_id + 100)
        assert exc_info.value.code == ErrorCode.NOT_FOUND


def test_empty_file_gets_schema():
    """An empty pre-created file is accepted and initialised by ensure_schema."""
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    try:
        with BookingStore(path) as store:
            store.ensure_schema()
            store.ensure_schema()
            assert store.find_jobs() == []
    finally:
        os.unlink(path)
