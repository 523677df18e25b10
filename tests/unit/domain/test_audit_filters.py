"""Unit tests for audit filters and saved views."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from custody.domain.models.audit_filters import AuditFilters, SavedView, TimeRange
from custody.domain.models.ledger_entry import (
    LedgerCategory,
    LedgerEntry,
    LedgerOutcome,
    LedgerSeverity,
)

NOW = datetime(2026, 1, 15, 10, 0, tzinfo=timezone.utc)


def _entry(**overrides) -> LedgerEntry:
    values = {
        "id": uuid4(),
        "ledger_seq": 1,
        "organization_id": uuid4(),
        "actor_id": None,
        "event_name": "job.completed",
        "category": LedgerCategory.OPERATIONS,
        "severity": LedgerSeverity.INFO,
        "outcome": LedgerOutcome.SUCCESS,
        "target_type": "job",
        "target_id": "job-1",
        "job_id": None,
        "metadata": {},
        "created_at": NOW,
        "prev_hash": None,
        "hash": "0" * 64,
    }
    values.update(overrides)
    return LedgerEntry(**values)


class TestAuditFilterValidation:
    def test_custom_range_requires_both_dates(self) -> None:
        """A custom range without bounds is rejected."""
        with pytest.raises(ValueError, match="custom"):
            AuditFilters(time_range=TimeRange.CUSTOM, start_date=NOW)

    def test_start_after_end_rejected(self) -> None:
        with pytest.raises(ValueError, match="start_date"):
            AuditFilters(start_date=NOW, end_date=NOW - timedelta(days=1))


class TestAuditFilterMatching:
    """Tests for AuditFilters.matches."""

    def test_empty_filters_match_everything(self) -> None:
        assert AuditFilters().matches(_entry(), NOW)

    def test_field_filters(self) -> None:
        """Each set field must equal the entry's field."""
        job = uuid4()
        entry = _entry(job_id=job, severity=LedgerSeverity.MATERIAL)
        assert AuditFilters(job_id=job).matches(entry, NOW)
        assert not AuditFilters(job_id=uuid4()).matches(entry, NOW)
        assert AuditFilters(severity=LedgerSeverity.MATERIAL).matches(entry, NOW)
        assert not AuditFilters(event_type="job.created").matches(entry, NOW)

    def test_relative_time_range(self) -> None:
        """A 24h range excludes older entries."""
        old = _entry(created_at=NOW - timedelta(hours=25))
        recent = _entry(created_at=NOW - timedelta(hours=1))
        filters = AuditFilters(time_range=TimeRange.LAST_24H)
        assert not filters.matches(old, NOW)
        assert filters.matches(recent, NOW)

    def test_custom_range_is_inclusive(self) -> None:
        """Entries exactly on the custom bounds match."""
        filters = AuditFilters(
            time_range=TimeRange.CUSTOM,
            start_date=NOW - timedelta(days=1),
            end_date=NOW,
        )
        assert filters.matches(_entry(created_at=NOW), NOW)
        assert filters.matches(_entry(created_at=NOW - timedelta(days=1)), NOW)
        assert not filters.matches(_entry(created_at=NOW + timedelta(seconds=1)), NOW)

    def test_category_overrides_saved_view(self) -> None:
        """With both category and view set, the view is ignored."""
        entry = _entry(category=LedgerCategory.OPERATIONS, event_name="job.started")
        filters = AuditFilters(
            category=LedgerCategory.OPERATIONS, view=SavedView.GOVERNANCE_ENFORCEMENT
        )
        assert filters.effective_view is None
        assert filters.matches(entry, NOW)


class TestSavedViews:
    """Tests for the saved view definitions."""

    @pytest.mark.parametrize(
        "entry_overrides,expected",
        [
            ({"outcome": LedgerOutcome.BLOCKED}, True),
            ({"severity": LedgerSeverity.CRITICAL}, True),
            ({}, False),
        ],
    )
    def test_review_queue(self, entry_overrides: dict, expected: bool) -> None:
        """Blocked or elevated entries land in the review queue."""
        filters = AuditFilters(view=SavedView.REVIEW_QUEUE)
        assert filters.matches(_entry(**entry_overrides), NOW) is expected

    def test_insurance_ready(self) -> None:
        """Only listed operations events are insurance-ready."""
        filters = AuditFilters(view=SavedView.INSURANCE_READY)
        assert filters.matches(_entry(event_name="job.completed"), NOW)
        assert not filters.matches(_entry(event_name="job.created"), NOW)
        assert not filters.matches(
            _entry(event_name="job.completed", category=LedgerCategory.SYSTEM), NOW
        )

    def test_governance_enforcement(self) -> None:
        filters = AuditFilters(view=SavedView.GOVERNANCE_ENFORCEMENT)
        assert filters.matches(_entry(category=LedgerCategory.GOVERNANCE), NOW)
        assert filters.matches(_entry(outcome=LedgerOutcome.BLOCKED), NOW)
        assert not filters.matches(_entry(), NOW)

    def test_incident_review(self) -> None:
        filters = AuditFilters(view=SavedView.INCIDENT_REVIEW)
        assert filters.matches(_entry(category=LedgerCategory.INCIDENT_REVIEW), NOW)
        assert filters.matches(_entry(severity=LedgerSeverity.MATERIAL), NOW)
        assert not filters.matches(_entry(), NOW)

    def test_access_review(self) -> None:
        filters = AuditFilters(view=SavedView.ACCESS_REVIEW)
        assert filters.matches(_entry(category=LedgerCategory.ACCESS_REVIEW), NOW)
        assert not filters.matches(_entry(), NOW)


class TestAuditFilterSerialization:
    def test_round_trip_through_dict(self) -> None:
        """Filters survive to_dict/from_dict unchanged."""
        filters = AuditFilters(
            category=LedgerCategory.GOVERNANCE,
            actor_id=uuid4(),
            outcome=LedgerOutcome.BLOCKED,
            time_range=TimeRange.CUSTOM,
            start_date=NOW - timedelta(days=3),
            end_date=NOW,
        )
        assert AuditFilters.from_dict(filters.to_dict()) == filters

    def test_to_dict_omits_unset_fields(self) -> None:
        assert AuditFilters().to_dict() == {"time_range": "all"}

    def test_from_none_is_default(self) -> None:
        assert AuditFilters.from_dict(None) == AuditFilters()
