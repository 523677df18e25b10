"""Unit tests for hash utilities.

The same canonicalization must be used at write time and verify time,
so these tests pin down the canonical form: fixed top-level order,
sorted nested maps, None as "", and rejection of non-finite floats.
"""

import json
from datetime import datetime, timedelta, timezone
from uuid import UUID

import pytest
from hypothesis import given
from hypothesis import strategies as st

from custody.domain.hash_utils import (
    DEFAULT_HASH_SALT,
    canonical_json,
    compute_manifest_hash,
    compute_verification_hash,
    format_timestamp,
    is_valid_sha256_hex,
    ledger_hash_record,
    manifest_hash_record,
    sha256_hex,
    to_json_compatible,
)

ORG = UUID("11111111-1111-4111-8111-111111111111")
CREATED = datetime(2026, 1, 15, 10, 0, 0, tzinfo=timezone.utc)

metadata_values = st.one_of(
    st.none(),
    st.booleans(),
    st.integers(min_value=-(10**9), max_value=10**9),
    st.text(max_size=20),
)
metadata_maps = st.dictionaries(st.text(min_size=1, max_size=8), metadata_values, max_size=8)


def _record(metadata: dict, **overrides) -> dict:
    values = {
        "ledger_seq": 1,
        "organization_id": ORG,
        "actor_id": None,
        "event_name": "job.created",
        "category": "operations",
        "severity": "info",
        "outcome": "success",
        "target_type": "job",
        "target_id": "job-1",
        "job_id": None,
        "created_at": CREATED,
        "metadata": metadata,
    }
    values.update(overrides)
    return ledger_hash_record(**values)


class TestCanonicalJson:
    """Tests for the canonical JSON form."""

    def test_top_level_order_is_preserved(self) -> None:
        """Top-level keys keep construction order."""
        text = canonical_json({"b": 1, "a": 2})
        assert text.index('"b"') < text.index('"a"')

    def test_nested_maps_are_sorted(self) -> None:
        """Nested maps are key-sorted regardless of insertion order."""
        first = canonical_json({"m": {"y": 1, "x": 2}})
        second = canonical_json({"m": {"x": 2, "y": 1}})
        assert first == second
        assert first.index('"x"') < first.index('"y"')

    def test_none_is_empty_string_at_every_level(self) -> None:
        """None is coalesced to "" at the top level and inside maps and lists."""
        parsed = json.loads(canonical_json({"a": None, "m": {"k": None}, "l": [None]}))
        assert parsed == {"a": "", "m": {"k": ""}, "l": [""]}

    def test_two_space_indent_and_unicode_kept(self) -> None:
        """Output is indented with two spaces and keeps non-ASCII characters."""
        text = canonical_json({"name": "Ünïcode"})
        assert text == '{\n  "name": "Ünïcode"\n}'

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_floats_rejected(self, value: float) -> None:
        """NaN and Infinity are not valid JSON and must be rejected."""
        with pytest.raises(ValueError, match="non-finite"):
            canonical_json({"v": value})

    def test_unsupported_type_rejected(self) -> None:
        """Objects without a canonical form raise ValueError."""
        with pytest.raises(ValueError, match="Cannot canonicalize"):
            canonical_json({"v": object()})

    def test_datetimes_and_uuids_are_rendered_canonically(self) -> None:
        """Datetimes render as UTC with microseconds, UUIDs as strings."""
        parsed = json.loads(canonical_json({"at": CREATED, "id": ORG}))
        assert parsed == {"at": "2026-01-15T10:00:00.000000+00:00", "id": str(ORG)}


class TestFormatTimestamp:
    """Tests for timestamp rendering."""

    def test_naive_is_taken_as_utc(self) -> None:
        """Naive datetimes are treated as UTC."""
        assert format_timestamp(datetime(2026, 1, 15, 10, 0)) == format_timestamp(CREATED)

    def test_offsets_are_normalized_to_utc(self) -> None:
        """An aware datetime in another zone renders as the same UTC instant."""
        plus_two = CREATED.astimezone(timezone(timedelta(hours=2)))
        assert format_timestamp(plus_two) == "2026-01-15T10:00:00.000000+00:00"


class TestVerificationHash:
    """Tests for compute_verification_hash."""

    @given(metadata=metadata_maps)
    def test_hash_is_64_lowercase_hex(self, metadata: dict) -> None:
        """Every hash is a 64-character lowercase hex digest."""
        digest = compute_verification_hash(_record(metadata))
        assert is_valid_sha256_hex(digest)

    @given(metadata=metadata_maps)
    def test_metadata_insertion_order_does_not_matter(self, metadata: dict) -> None:
        """Rebuilding metadata in reverse order yields the same hash."""
        reversed_metadata = dict(reversed(list(metadata.items())))
        assert compute_verification_hash(_record(metadata)) == compute_verification_hash(
            _record(reversed_metadata)
        )

    @given(metadata=metadata_maps)
    def test_json_round_trip_preserves_hash(self, metadata: dict) -> None:
        """Metadata read back from a JSON column hashes identically."""
        stored = to_json_compatible(metadata)
        assert compute_verification_hash(_record(metadata)) == compute_verification_hash(
            _record(stored)
        )

    def test_prev_hash_is_part_of_the_hash(self) -> None:
        """Chaining to a different predecessor changes the hash."""
        record = _record({})
        assert compute_verification_hash(record, "a" * 64) != compute_verification_hash(
            record, "b" * 64
        )

    def test_missing_prev_hash_equals_empty_prev_hash(self) -> None:
        """The first entry of a chain hashes with an empty predecessor."""
        record = _record({})
        assert compute_verification_hash(record, None) == compute_verification_hash(
            record, ""
        )

    def test_salt_changes_the_hash(self) -> None:
        """Deployments with different salts produce different hashes."""
        record = _record({})
        assert compute_verification_hash(record, None, DEFAULT_HASH_SALT) != (
            compute_verification_hash(record, None, "other-salt")
        )

    @pytest.mark.parametrize(
        "field,value",
        [
            ("ledger_seq", 2),
            ("event_name", "job.completed"),
            ("outcome", "failed"),
            ("target_id", "job-2"),
            ("created_at", CREATED + timedelta(microseconds=1)),
        ],
    )
    def test_any_field_change_changes_the_hash(self, field: str, value: object) -> None:
        """Altering any hashed field produces a different hash."""
        assert compute_verification_hash(_record({})) != compute_verification_hash(
            _record({}, **{field: value})
        )


class TestManifestHash:
    """Tests for manifest hashing."""

    def _manifest(self) -> dict:
        return {
            "version": "1.0",
            "generated_at": "2026-01-15T10:00:00.000000+00:00",
            "organization_id": str(ORG),
            "work_record_id": None,
            "export_type": "ledger",
            "filters": {"time_range": "all"},
            "files": [
                {
                    "name": "ledger.json",
                    "type": "application/json",
                    "hash": "0" * 64,
                    "size": 2,
                }
            ],
        }

    def test_field_order_of_stored_manifest_does_not_matter(self) -> None:
        """A manifest loaded from JSON in any key order hashes the same."""
        manifest = self._manifest()
        shuffled = dict(reversed(list(manifest.items())))
        assert compute_manifest_hash(manifest) == compute_manifest_hash(shuffled)

    def test_extra_keys_are_ignored(self) -> None:
        """Keys outside the manifest record (the embedded hash) are not hashed."""
        manifest = self._manifest()
        with_hash = {**manifest, "manifest_hash": compute_manifest_hash(manifest)}
        assert compute_manifest_hash(with_hash) == compute_manifest_hash(manifest)

    def test_file_digest_change_changes_hash(self) -> None:
        """Changing one file digest changes the manifest hash."""
        manifest = self._manifest()
        tampered = self._manifest()
        tampered["files"][0]["hash"] = "1" * 64
        assert compute_manifest_hash(manifest) != compute_manifest_hash(tampered)

    def test_record_has_fixed_key_order(self) -> None:
        """The manifest record always lists fields in the same order."""
        assert list(manifest_hash_record(self._manifest())) == [
            "version",
            "generated_at",
            "organization_id",
            "work_record_id",
            "export_type",
            "filters",
            "files",
        ]


class TestDigestHelpers:
    """Tests for the small digest helpers."""

    def test_sha256_hex_of_empty_bytes(self) -> None:
        """sha256_hex matches the well-known empty digest."""
        assert sha256_hex(b"") == (
            "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
        )

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("a" * 64, True),
            ("A" * 64, False),
            ("a" * 63, False),
            ("g" * 64, False),
        ],
    )
    def test_is_valid_sha256_hex(self, value: str, expected: bool) -> None:
        """Only 64-character lowercase hex strings are valid digests."""
        assert is_valid_sha256_hex(value) is expected
