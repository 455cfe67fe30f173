"""
Tests for the translator matching engine.

Covers the eligibility rules one by one, the agreement between the
job->translators and translator->jobs directions, and overlap detection.
"""

from datetime import timedelta

import pytest
from hypothesis import given
from hypothesis import strategies as st

from conftest import ARABIC, NOW, PERSIAN, assign, insert_job
from db.booking_store import BookingStore
from models.classification import TranslatorLevel
from models.errors import ErrorCode, ToolError
from schemas.records import JobRecord, UserRecord
from utils.datetime_helpers import format_ts
from utils.matching import (
    find_eligible_jobs,
    find_eligible_translators,
    is_eligible,
    is_translator_already_booked,
    job_type_for_translator_type,
    levels_for_certification,
    translator_type_for_job_type,
)


def _job(**overrides) -> JobRecord:
    fields = {
        "id": 1,
        "user_id": 100,
        "from_language_id": ARABIC,
        "due": "2026-03-04 10:00:00",
        "duration": 60,
        "status": "pending",
        "job_type": "paid",
        "customer_phone_type": "yes",
        "customer_physical_type": "no",
    }
    fields.update(overrides)
    return JobRecord.model_validate(fields)


def _translator(**overrides) -> UserRecord:
    fields = {
        "id": 10,
        "email": "tolk@example.com",
        "user_type": "translator",
        "status": 1,
        "translator_type": "professional",
        "translator_level": "Certified",
        "gender": "female",
        "city": "Stockholm",
    }
    fields.update(overrides)
    return UserRecord.model_validate(fields)


def _eligible(translator=None, job=None, languages=frozenset({ARABIC}), blacklist=frozenset(), city=None):
    return is_eligible(translator or _translator(), job or _job(), languages, blacklist, city)


class TestTypeMappings:
    def test_job_type_to_translator_type(self):
        assert translator_type_for_job_type("paid") == "professional"
        assert translator_type_for_job_type("rws") == "rwstranslator"
        assert translator_type_for_job_type("unpaid") == "volunteer"

    def test_unknown_job_type_is_configuration_error(self):
        with pytest.raises(ToolError) as exc_info:
            translator_type_for_job_type("freelance")
        assert exc_info.value.code == ErrorCode.CONFIGURATION_ERROR

    def test_unknown_translator_type_falls_back_to_unpaid(self):
        assert job_type_for_translator_type("professional") == "paid"
        assert job_type_for_translator_type(None) == "unpaid"

    def test_levels_for_certification(self):
        assert levels_for_certification(None) == {level.value for level in TranslatorLevel}
        assert levels_for_certification("law") == {"Certified with specialisation in law"}
        assert "Layman" in levels_for_certification("normal")
        assert "Layman" not in levels_for_certification("both")

    def test_unknown_certification_is_configuration_error(self):
        with pytest.raises(ToolError) as exc_info:
            levels_for_certification("platinum")
        assert exc_info.value.code == ErrorCode.CONFIGURATION_ERROR


class TestIsEligible:
    """One test per eligibility rule."""

    def test_baseline_is_eligible(self):
        assert _eligible()

    def test_job_type_must_match_translator_type(self):
        assert not _eligible(translator=_translator(translator_type="volunteer"))
        assert _eligible(
            translator=_translator(translator_type="volunteer"), job=_job(job_type="unpaid")
        )

    def test_certification_both_excludes_layman(self):
        layman = _translator(translator_level="Layman")
        assert not _eligible(translator=layman, job=_job(certified="both"))
        assert _eligible(translator=layman, job=_job(certified="normal"))

    def test_certification_normal_excludes_certified_only(self):
        assert not _eligible(job=_job(certified="normal"))

    def test_multi_level_translator(self):
        translator = _translator(translator_level="Layman, Certified with specialisation in law")
        assert _eligible(translator=translator, job=_job(certified="n_law"))
        assert _eligible(translator=translator, job=_job(certified="normal"))
        assert not _eligible(translator=translator, job=_job(certified="health"))

    def test_gender_requirement(self):
        assert _eligible(job=_job(gender="female"))
        assert not _eligible(job=_job(gender="male"))

    def test_blacklisted_translator(self):
        assert not _eligible(blacklist=frozenset({10}))

    def test_language_required(self):
        assert not _eligible(languages=frozenset({PERSIAN}))

    def test_only_pending_jobs(self):
        assert not _eligible(job=_job(status="assigned"))

    def test_inactive_translator(self):
        assert not _eligible(translator=_translator(status=0))

    def test_customers_are_never_eligible(self):
        assert not _eligible(translator=_translator(user_type="customer"))

    def test_physical_only_job_requires_same_town(self):
        job = _job(customer_phone_type="no", customer_physical_type="yes", town="  stockholm ")
        assert _eligible(job=job)
        assert not _eligible(translator=_translator(city="Malmö"), job=job)

    def test_physical_job_falls_back_to_customer_city(self):
        job = _job(customer_phone_type="no", customer_physical_type="yes", town=None)
        assert _eligible(job=job, city="Stockholm")
        assert not _eligible(job=job, city=None)

    def test_phone_or_physical_job_ignores_town(self):
        job = _job(customer_phone_type="yes", customer_physical_type="yes", town="Malmö")
        assert _eligible(job=job)

    def test_invalid_job_configuration_raises(self):
        with pytest.raises(ToolError):
            _eligible(job=_job(job_type="unknown"))

    @given(
        level=st.sampled_from([level.value for level in TranslatorLevel]),
        certified=st.sampled_from(
            [None, "normal", "yes", "both", "law", "n_law", "health", "n_health"]
        ),
        gender=st.sampled_from([None, "male", "female"]),
        blacklisted=st.booleans(),
    )
    def test_blacklisting_never_grants_eligibility(self, level, certified, gender, blacklisted):
        translator = _translator(translator_level=level)
        job = _job(certified=certified, gender=gender)
        open_result = _eligible(translator=translator, job=job)
        barred = _eligible(
            translator=translator,
            job=job,
            blacklist=frozenset({10}) if blacklisted else frozenset(),
        )
        assert barred <= open_result
        if blacklisted:
            assert barred is False


class TestStoreBackedMatching:
    """Tests for the two query directions against a seeded database."""

    def test_find_eligible_translators(self, seeded_db):
        job_id = insert_job(seeded_db.db_path, seeded_db.customer_id)
        with BookingStore(seeded_db.db_path) as store:
            job = store.require_job(job_id)
            ids = [t.id for t in find_eligible_translators(store, job)]
        assert ids == [seeded_db.certified_translator_id, seeded_db.layman_translator_id]

    def test_exclude_user(self, seeded_db):
        job_id = insert_job(seeded_db.db_path, seeded_db.customer_id)
        with BookingStore(seeded_db.db_path) as store:
            job = store.require_job(job_id)
            ids = [
                t.id
                for t in find_eligible_translators(
                    store, job, exclude_user_id=seeded_db.certified_translator_id
                )
            ]
        assert ids == [seeded_db.layman_translator_id]

    def test_blacklist_from_store(self, seeded_db):
        job_id = insert_job(seeded_db.db_path, seeded_db.customer_id)
        with BookingStore(seeded_db.db_path) as store:
            store.add_to_blacklist(seeded_db.customer_id, seeded_db.layman_translator_id)
            store.commit()
            job = store.require_job(job_id)
            ids = [t.id for t in find_eligible_translators(store, job)]
        assert ids == [seeded_db.certified_translator_id]

    def test_find_eligible_jobs_sorted_by_due(self, seeded_db):
        late = insert_job(
            seeded_db.db_path, seeded_db.customer_id, due=format_ts(NOW + timedelta(days=5))
        )
        early = insert_job(
            seeded_db.db_path, seeded_db.customer_id, due=format_ts(NOW + timedelta(days=2))
        )
        insert_job(seeded_db.db_path, seeded_db.customer_id, from_language_id=PERSIAN)
        insert_job(seeded_db.db_path, seeded_db.customer_id, certified="normal")

        with BookingStore(seeded_db.db_path) as store:
            translator = store.require_user(seeded_db.certified_translator_id)
            ids = [job.id for job in find_eligible_jobs(store, translator)]
        assert ids == [early, late]

    def test_translator_without_languages_sees_nothing(self, seeded_db):
        insert_job(seeded_db.db_path, seeded_db.customer_id)
        with BookingStore(seeded_db.db_path) as store:
            translator_id = store.create_user(
                {"email": "new@example.com", "user_type": "translator",
                 "translator_type": "professional", "translator_level": "Certified"}
            )
            store.commit()
            translator = store.require_user(translator_id)
            assert find_eligible_jobs(store, translator) == []

    def test_both_directions_agree(self, seeded_db):
        """A translator lists a job exactly when the job lists the translator."""
        variants = [
            {},
            {"certified": "both"},
            {"certified": "normal", "gender": "male"},
            {"job_type": "unpaid"},
            {"customer_phone_type": "no", "customer_physical_type": "yes", "town": "Göteborg"},
            {"customer_phone_type": "no", "customer_physical_type": "yes", "town": None},
            {"user_id": seeded_db.other_customer_id, "job_type": "unpaid"},
        ]
        job_ids = []
        for overrides in variants:
            overrides = dict(overrides)
            customer_id = overrides.pop("user_id", seeded_db.customer_id)
            job_ids.append(insert_job(seeded_db.db_path, customer_id, **overrides))

        with BookingStore(seeded_db.db_path) as store:
            translators = store.find_active_translators()
            by_translator = {t.id: {j.id for j in find_eligible_jobs(store, t)} for t in translators}
            for job_id in job_ids:
                job = store.require_job(job_id)
                listed = {t.id for t in find_eligible_translators(store, job)}
                for translator in translators:
                    assert (translator.id in listed) == (job_id in by_translator[translator.id])


class TestAlreadyBooked:
    """Tests for overlap detection on accept."""

    def _held_job(self, seeded_db, due, duration=60):
        job_id = insert_job(
            seeded_db.db_path, seeded_db.customer_id, due=format_ts(due), duration=duration
        )
        assign(seeded_db.db_path, job_id, seeded_db.certified_translator_id)
        return job_id

    def _check(self, seeded_db, due, duration=60):
        candidate = insert_job(
            seeded_db.db_path, seeded_db.customer_id, due=format_ts(due), duration=duration
        )
        with BookingStore(seeded_db.db_path) as store:
            job = store.require_job(candidate)
            return is_translator_already_booked(store, seeded_db.certified_translator_id, job)

    def test_overlapping_interval(self, seeded_db):
        start = NOW + timedelta(days=1)
        self._held_job(seeded_db, start, duration=90)
        assert self._check(seeded_db, start + timedelta(minutes=60))

    def test_same_start(self, seeded_db):
        start = NOW + timedelta(days=1)
        self._held_job(seeded_db, start, duration=0)
        assert self._check(seeded_db, start, duration=0)

    def test_back_to_back_is_free(self, seeded_db):
        start = NOW + timedelta(days=1)
        self._held_job(seeded_db, start, duration=60)
        assert not self._check(seeded_db, start + timedelta(minutes=60))

    def test_other_translators_jobs_do_not_count(self, seeded_db):
        start = NOW + timedelta(days=1)
        job_id = insert_job(seeded_db.db_path, seeded_db.customer_id, due=format_ts(start))
        assign(seeded_db.db_path, job_id, seeded_db.layman_translator_id)
        assert not self._check(seeded_db, start)
