"""Command runner: one transaction per command.

Every material command runs as:

    validate entry  ->  begin  ->  mutate  ->  append ledger entry
        ->  record idempotency key  ->  commit  ->  notify listeners

The mutation, the ledger entry and the idempotency record share one
unit-of-work transaction. If the ledger append fails, the mutation is
rolled back and the caller gets LEDGER_WRITE_FAILED; a mutation is never
left in place without the entry that documents it.

With an idempotency key, a retried command returns the first result
without running the mutation again. The idempotency store is checked
first, then the ledger (entries carry the key in their metadata), so a
replay still works after the idempotency record has expired. Both paths
compare the request payload hash, and both return the stored response
headers.

Failures are returned as CommandResult values, never raised.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from typing import Any, TypeVar
from uuid import UUID

from custody.application.ports.unit_of_work import TransactionPort, UnitOfWorkPort
from custody.application.services.base import LoggingMixin
from custody.application.services.ledger_write_notifier import (
    LedgerWriteListener,
    LedgerWriteNotifier,
)
from custody.domain.errors.idempotency import IdempotencyKeyConflictError
from custody.domain.errors.ledger import LedgerContractError, LedgerWriteError
from custody.domain.exceptions import CustodyError
from custody.domain.models.command import (
    COMMAND_EXECUTION_FAILED,
    CommandContext,
    CommandOptions,
    CommandResult,
)
from custody.domain.models.event_contracts import (
    EventContractRegistry,
    ResolvedEntrySpec,
)
from custody.domain.models.idempotency_key import (
    DEFAULT_IDEMPOTENCY_TTL,
    IdempotencyRecord,
    IdempotencyScope,
)
from custody.domain.models.ledger_entry import (
    COMMAND_RESULT_METADATA,
    IDEMPOTENCY_KEY_METADATA,
    PAYLOAD_HASH_METADATA,
    LedgerEntry,
    LedgerEntrySpec,
)
from custody.infrastructure.monitoring.metrics import get_metrics_collector

T = TypeVar("T")

MutationFn = Callable[[TransactionPort], Awaitable[T]]
SpecRefiner = Callable[[T, LedgerEntrySpec], LedgerEntrySpec]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class _ConcurrentDuplicate(Exception):
    """A concurrent request with the same idempotency key committed first."""


class CommandRunner(LoggingMixin):
    """Runs commands atomically with their ledger entries.

    Attributes:
        _uow: Unit of work providing transactions.
        _notifier: Receives each committed entry (projection invalidation).
        _idempotency_ttl: Lifetime of stored idempotency records.
    """

    def __init__(
        self,
        uow: UnitOfWorkPort,
        idempotency_ttl: timedelta = DEFAULT_IDEMPOTENCY_TTL,
        clock: Callable[[], datetime] = _utc_now,
        notifier: LedgerWriteNotifier | None = None,
    ) -> None:
        self._uow = uow
        self._idempotency_ttl = idempotency_ttl
        self._clock = clock
        self._notifier = notifier or LedgerWriteNotifier()
        self._init_logger(component="ledger")

    def add_listener(self, listener: LedgerWriteListener) -> None:
        self._notifier.add_listener(listener)

    async def run_command(
        self,
        context: CommandContext,
        options: CommandOptions,
        mutation_fn: MutationFn[T],
        entry_spec: LedgerEntrySpec,
        refine_spec: SpecRefiner[T] | None = None,
    ) -> CommandResult:
        """Run a command.

        Args:
            context: Who is acting, for which organization, on which endpoint.
            options: Idempotency key and ledger options.
            mutation_fn: Performs the domain mutation inside the transaction.
                Its return value must be JSON-compatible; it is stored in
                the entry metadata and replayed on retries.
            entry_spec: The ledger entry to record. Validated against the
                event contracts before the mutation runs.
            refine_spec: Optional hook to complete the entry spec from the
                mutation result (for example, set target_id to a new id).
                It may not change the event name.

        Returns:
            CommandResult with the mutation result and ledger entry id.
        """
        log = self._log_operation(
            "run_command",
            event_name=entry_spec.event_name,
            organization_id=str(context.organization_id),
            request_id=context.request_id,
        )

        resolved: ResolvedEntrySpec | None = None
        if not options.skip_ledger:
            try:
                resolved = EventContractRegistry.resolve(entry_spec)
            except LedgerContractError as e:
                log.warning("command_rejected_contract", error=str(e))
                return CommandResult.failure(e.code, str(e))

        scope = self._scope(context, options)
        if scope is not None:
            try:
                replay = await self._lookup_replay(scope, options, entry_spec.event_name)
            except IdempotencyKeyConflictError as e:
                log.warning("command_rejected_key_reuse", error=str(e))
                return CommandResult.failure(e.code, str(e))
            if replay is not None:
                log.info("command_replayed", ledger_entry_id=str(replay.ledger_entry_id))
                return replay

        try:
            entry, data = await self._execute(
                context, options, scope, mutation_fn, entry_spec, refine_spec, resolved
            )
        except _ConcurrentDuplicate:
            assert scope is not None
            try:
                replay = await self._lookup_replay(scope, options, entry_spec.event_name)
            except IdempotencyKeyConflictError as e:
                log.warning("command_rejected_key_reuse", error=str(e))
                return CommandResult.failure(e.code, str(e))
            if replay is not None:
                return replay
            return CommandResult.failure(
                COMMAND_EXECUTION_FAILED, "Concurrent duplicate command"
            )
        except LedgerContractError as e:
            log.warning("command_rejected_contract", error=str(e))
            return CommandResult.failure(e.code, str(e))
        except LedgerWriteError as e:
            log.error("ledger_write_failed", error=str(e))
            return CommandResult.failure(
                e.code, "Failed to record audit log entry", internal_message=str(e)
            )
        except Exception as e:
            code = e.code if isinstance(e, CustodyError) else COMMAND_EXECUTION_FAILED
            log.warning(
                "command_failed",
                error=str(e),
                error_type=type(e).__name__,
                error_code=code,
            )
            message = str(e) if isinstance(e, CustodyError) else "Command execution failed"
            return CommandResult.failure(code, message, internal_message=repr(e))

        if entry is not None:
            get_metrics_collector().increment_ledger_appends(entry.category.value)
            await self._notifier.notify([entry])
            log.info("command_committed", ledger_entry_id=str(entry.id))
            return CommandResult.success(
                data, entry.id, headers=options.headers_for(data)
            )

        log.info("command_committed_without_ledger")
        return CommandResult.success(data, None, headers=options.headers_for(data))

    def _scope(
        self, context: CommandContext, options: CommandOptions
    ) -> IdempotencyScope | None:
        if not options.idempotency_key:
            return None
        return IdempotencyScope(
            idempotency_key=options.idempotency_key,
            organization_id=context.organization_id,
            actor_id=context.user_id,
            endpoint=context.endpoint,
        )

    async def _lookup_replay(
        self, scope: IdempotencyScope, options: CommandOptions, event_name: str
    ) -> CommandResult | None:
        now = self._clock()
        async with self._uow.begin() as tx:
            record = await tx.idempotency.get(scope, now)
            if record is not None:
                if not record.matches_payload(options.payload_hash):
                    raise IdempotencyKeyConflictError(
                        scope.idempotency_key, scope.endpoint
                    )
                body = record.response_body or {}
                entry_id = body.get("ledger_entry_id")
                return CommandResult.success(
                    body.get("data"),
                    _to_uuid(entry_id),
                    replayed=True,
                    headers=record.response_headers,
                )
            entry = await tx.ledger.find_by_idempotency_key(
                scope.organization_id,
                scope.actor_id,
                event_name,
                scope.idempotency_key,
            )
        if entry is None:
            return None
        if (
            entry.payload_hash is not None
            and options.payload_hash is not None
            and entry.payload_hash != options.payload_hash
        ):
            raise IdempotencyKeyConflictError(scope.idempotency_key, scope.endpoint)
        return CommandResult.success(
            entry.command_result,
            entry.id,
            replayed=True,
            headers=options.headers_for(entry.command_result),
        )

    async def _execute(
        self,
        context: CommandContext,
        options: CommandOptions,
        scope: IdempotencyScope | None,
        mutation_fn: MutationFn[T],
        entry_spec: LedgerEntrySpec,
        refine_spec: SpecRefiner[T] | None,
        resolved: ResolvedEntrySpec | None,
    ) -> tuple[LedgerEntry | None, Any]:
        async with self._uow.begin() as tx:
            data = await mutation_fn(tx)

            entry: LedgerEntry | None = None
            if resolved is not None:
                spec = entry_spec
                if refine_spec is not None:
                    spec = refine_spec(data, entry_spec)
                    if spec.event_name != entry_spec.event_name:
                        raise ValueError("refine_spec may not change the event name")
                spec = spec.with_metadata(
                    request_id=context.request_id,
                    endpoint=context.endpoint,
                    actor_role=context.role,
                    ip=context.ip,
                    user_agent=context.user_agent,
                    **{
                        IDEMPOTENCY_KEY_METADATA: options.idempotency_key,
                        PAYLOAD_HASH_METADATA: options.payload_hash,
                        COMMAND_RESULT_METADATA: data,
                    },
                )
                final = EventContractRegistry.resolve(spec)
                try:
                    entry = await tx.ledger.append(
                        context.organization_id, context.user_id, final
                    )
                except LedgerWriteError:
                    raise
                except Exception as e:
                    raise LedgerWriteError(f"Failed to append entry: {e}") from e

            if scope is not None:
                now = self._clock()
                stored = await tx.idempotency.save(
                    IdempotencyRecord(
                        scope=scope,
                        response_status=options.response_status,
                        response_body={
                            "data": data,
                            "ledger_entry_id": str(entry.id) if entry else None,
                        },
                        response_headers=options.headers_for(data),
                        payload_hash=options.payload_hash,
                        created_at=now,
                        expires_at=now + self._idempotency_ttl,
                    )
                )
                if not stored:
                    raise _ConcurrentDuplicate()

        return entry, data


def _to_uuid(value: Any) -> Any:
    if value is None or isinstance(value, UUID):
        return value
    return UUID(str(value))
