"""Ledger event contracts.

Centralized registry of canonical ledger events: the category, severity
and outcome each event is recorded with, and the metadata keys it must
carry. Commands that record a contracted event are validated against
this registry before any mutation runs.

Events without a contract (for example the per-type export lifecycle
events) are allowed, but must then state category, severity and outcome
explicitly.

Usage:
    from custody.domain.models.event_contracts import EventContractRegistry

    contract = EventContractRegistry.get("incident.closed")
    missing = contract.missing_metadata({"closure_summary": "..."})
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from custody.domain.errors.ledger import LedgerContractError
from custody.domain.models.ledger_entry import (
    LedgerCategory,
    LedgerEntrySpec,
    LedgerOutcome,
    LedgerSeverity,
)


@dataclass(frozen=True)
class EventContract:
    event_name: str
    category: LedgerCategory
    severity: LedgerSeverity
    outcome: LedgerOutcome
    required_metadata: tuple[str, ...] = ()
    description: str = ""

    def missing_metadata(self, metadata: Mapping[str, Any]) -> list[str]:
        return [
            key
            for key in self.required_metadata
            if metadata.get(key) in (None, "")
        ]


def _contract(
    event_name: str,
    category: LedgerCategory,
    severity: LedgerSeverity,
    outcome: LedgerOutcome,
    required: tuple[str, ...],
    description: str,
) -> tuple[str, EventContract]:
    return event_name, EventContract(
        event_name, category, severity, outcome, required, description
    )


_C = LedgerCategory
_S = LedgerSeverity
_O = LedgerOutcome

LEDGER_EVENT_CONTRACTS: dict[str, EventContract] = dict(
    [
        # Review queue
        _contract(
            "review.assigned", _C.REVIEW_QUEUE, _S.INFO, _O.SUCCESS,
            ("owner_id", "due_date"),
            "Review item assigned to an owner with due date",
        ),
        _contract(
            "review.resolved", _C.REVIEW_QUEUE, _S.INFO, _O.SUCCESS,
            ("reason",),
            "Review item resolved with reason",
        ),
        _contract(
            "review.waived", _C.REVIEW_QUEUE, _S.MATERIAL, _O.SUCCESS,
            ("reason", "waiver_reason"),
            "Review item waived with documented reason",
        ),
        # Incident review
        _contract(
            "incident.corrective_action.created", _C.INCIDENT_REVIEW,
            _S.MATERIAL, _O.SUCCESS,
            ("title", "owner_id", "due_date", "verification_method"),
            "Corrective action created for an incident",
        ),
        _contract(
            "incident.closed", _C.INCIDENT_REVIEW, _S.MATERIAL, _O.SUCCESS,
            ("closure_summary", "root_cause"),
            "Incident closed with summary, root cause and attestation",
        ),
        _contract(
            "security.incident.opened", _C.INCIDENT_REVIEW, _S.CRITICAL,
            _O.SUCCESS, ("reason",),
            "Security incident opened",
        ),
        # Attestations
        _contract(
            "attestation.created", _C.ATTESTATIONS, _S.MATERIAL, _O.SUCCESS,
            ("signer_user_id", "signer_role", "statement"),
            "Attestation created with signer and statement",
        ),
        # Access review
        _contract(
            "access.revoked", _C.ACCESS_REVIEW, _S.MATERIAL, _O.SUCCESS,
            ("action_type", "reason"),
            "User access revoked, downgraded or sessions revoked",
        ),
        _contract(
            "security.suspicious_access.flagged", _C.ACCESS_REVIEW,
            _S.MATERIAL, _O.SUCCESS, ("reason",),
            "Suspicious access activity flagged for review",
        ),
        # Governance enforcement
        _contract(
            "auth.role_violation", _C.GOVERNANCE, _S.CRITICAL, _O.BLOCKED,
            ("attempted_action", "policy_statement"),
            "Role-based access control violation attempt",
        ),
        _contract(
            "policy.denied", _C.GOVERNANCE, _S.MATERIAL, _O.BLOCKED,
            ("policy_statement",),
            "Policy violation, action denied",
        ),
        # Exports
        _contract(
            "export.requested", _C.SYSTEM, _S.INFO, _O.SUCCESS,
            ("export_id", "export_type"),
            "Export job queued",
        ),
        _contract(
            "export.canceled", _C.SYSTEM, _S.INFO, _O.SUCCESS,
            ("export_id", "previous_state"),
            "Export job canceled",
        ),
        _contract(
            "export.pack.generated", _C.SYSTEM, _S.INFO, _O.SUCCESS,
            ("pack_id", "format", "export_type"),
            "Proof pack generated with manifest and hashes",
        ),
        # Operations
        _contract(
            "job.created", _C.OPERATIONS, _S.INFO, _O.SUCCESS, (),
            "Work record created",
        ),
        _contract(
            "job.completed", _C.OPERATIONS, _S.MATERIAL, _O.SUCCESS, (),
            "Work record completed",
        ),
        _contract(
            "control.verified", _C.OPERATIONS, _S.INFO, _O.SUCCESS, (),
            "Control verified",
        ),
        _contract(
            "evidence.uploaded", _C.OPERATIONS, _S.INFO, _O.SUCCESS, (),
            "Evidence uploaded to a work record",
        ),
    ]
)

del _C, _S, _O


@dataclass(frozen=True)
class ResolvedEntrySpec:
    """A spec with category, severity and outcome filled in."""

    spec: LedgerEntrySpec
    category: LedgerCategory
    severity: LedgerSeverity
    outcome: LedgerOutcome


class EventContractRegistry:
    """Lookup and validation over LEDGER_EVENT_CONTRACTS."""

    @staticmethod
    def get(event_name: str) -> EventContract | None:
        return LEDGER_EVENT_CONTRACTS.get(event_name)

    @staticmethod
    def events_in(category: LedgerCategory) -> list[str]:
        return sorted(
            name
            for name, contract in LEDGER_EVENT_CONTRACTS.items()
            if contract.category == category
        )

    @staticmethod
    def resolve(spec: LedgerEntrySpec) -> ResolvedEntrySpec:
        """Validate a spec and fill in classification from its contract.

        Raises:
            LedgerContractError: If required metadata is missing, or an
                uncontracted event does not state its classification.
        """
        contract = LEDGER_EVENT_CONTRACTS.get(spec.event_name)
        if contract is None:
            missing = [
                name
                for name, value in (
                    ("category", spec.category),
                    ("severity", spec.severity),
                    ("outcome", spec.outcome),
                )
                if value is None
            ]
            if missing:
                raise LedgerContractError(spec.event_name, missing)
            return ResolvedEntrySpec(spec, spec.category, spec.severity, spec.outcome)  # type: ignore[arg-type]

        missing_metadata = contract.missing_metadata(spec.metadata)
        if missing_metadata:
            raise LedgerContractError(spec.event_name, missing_metadata)
        return ResolvedEntrySpec(
            spec,
            spec.category or contract.category,
            spec.severity or contract.severity,
            spec.outcome or contract.outcome,
        )
