"""Username change saga.

A rename touches two documents that the store cannot update atomically: the
user record at ``users/<id>`` and the shared ``userIDByUsername`` index. The
coordinator runs the change as an explicit sequence of steps, each of which
either completes or stops the saga with a typed error:

1. verify_password          -> AuthenticationError
2. validate (local)         -> MismatchError / InvalidFormatError
3. sanitize (local)         -> InvalidFormatError
4. fetch_user_record        -> NotFoundError, StoreUnavailable/StoreRejected
5. check_user_name_available-> ConflictError, StoreUnavailable/StoreRejected
6a. write_user_record       -> StoreUnavailable/StoreRejected (nothing changed)
6b. write_name_index        -> PartialFailure (record changed, index did not)

Nothing is written before step 6. Step 6a is never retried here; after a
PartialFailure the caller either calls ``retry_index_write`` or runs the
index reconciler.

Known race: two clients can both pass step 5 for the same name before either
reaches step 6. Step 5 is therefore issued immediately before the writes, and
on stores with conditional writes step 6b re-checks the claim inside a
compare-and-set loop. A claim lost there surfaces as a PartialFailure. Without
a backend uniqueness constraint the window cannot be closed entirely; the
reconciler detects duplicates left behind.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, TypeVar

from app.adapters.credentials import AbstractPasswordVerifier
from app.adapters.notifier import AbstractNotifier
from app.adapters.store.base import (
    NAME_INDEX_PATH,
    AbstractKeyValueStore,
    name_index_entry_path,
    user_path,
)
from app.core.config import settings
from app.core.errors import (
    AppError,
    AuthenticationError,
    ConflictError,
    NotFoundError,
    PartialFailure,
    StoreError,
    StoreRejected,
)
from app.schemas.identity import RenameResult
from app.utils.sanitization import sanitize_user_name
from app.utils.validation import (
    validate_path_segment,
    validate_sanitized_user_name,
    validate_user_name_change,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

SUCCESS_MESSAGE = "Username successfully changed!"
UNCHANGED_MESSAGE = "That is already your username."
INDEX_REPAIRED_MESSAGE = "Username directory updated."
INTERRUPTED_MESSAGE = "Your username change was interrupted. Please check your username and retry."


@dataclass
class PendingRename:
    """In-flight saga state, discarded once the saga ends."""

    user_id: str
    old_user_name: str | None
    candidate_user_name: str
    indexed_owner: str | None
    sanitized_user_record: dict[str, Any] = field(repr=False)
    original_user_record: dict[str, Any] = field(repr=False)


def apply_name_to_index(
    index: Any,
    user_id: str,
    user_name: str,
) -> dict[str, str]:
    """Return a copy of the index where ``user_name`` is the only name of ``user_id``.

    Every other entry pointing at ``user_id`` is dropped, which removes the
    previous name and any leftovers from earlier partial failures.

    Raises:
        StoreRejected: If the stored index is not a mapping.
        ConflictError: If ``user_name`` is already mapped to another user.
    """
    if index is None:
        index = {}
    if not isinstance(index, dict):
        raise StoreRejected(
            code="name_index_malformed",
            message="Username index document is not a mapping",
        )

    owner = index.get(user_name)
    if owner is not None and owner != user_id:
        raise ConflictError(
            code="user_name_claimed_concurrently",
            message="Username was claimed by another account during the update.",
            details={"new_user_name": user_name},
        )

    updated = {name: uid for name, uid in index.items() if uid != user_id}
    updated[user_name] = user_id
    return updated


class IdentityChangeCoordinator:
    """Runs username changes while keeping user records and the name index consistent.

    Attributes:
        store: Key-value store holding users and the name index.
        password_verifier: Collaborator answering the current-password check.
        notifier: Receives exactly one outcome message per rename.
    """

    def __init__(
        self,
        store: AbstractKeyValueStore,
        password_verifier: AbstractPasswordVerifier,
        notifier: AbstractNotifier,
        *,
        min_chars: int | None = None,
        max_chars: int | None = None,
        index_cas_attempts: int | None = None,
        compensate_on_partial_failure: bool | None = None,
    ) -> None:
        cfg = settings.app
        self.store = store
        self.password_verifier = password_verifier
        self.notifier = notifier
        self.min_chars = min_chars if min_chars is not None else cfg.user_name_min_chars
        self.max_chars = max_chars if max_chars is not None else cfg.user_name_max_chars
        self.index_cas_attempts = (
            index_cas_attempts if index_cas_attempts is not None else cfg.index_cas_attempts
        )
        self.compensate_on_partial_failure = (
            compensate_on_partial_failure
            if compensate_on_partial_failure is not None
            else cfg.rename_compensate_on_partial_failure
        )
        if self.index_cas_attempts < 1:
            raise ValueError("index_cas_attempts must be >= 1")

    async def _step(self, step: str, user_id: str, awaitable: Awaitable[T]) -> T:
        """Await one store round trip, tagging store errors with the step name."""
        logger.debug("rename.step.start", extra={"step": step, "user_id": user_id})
        try:
            return await awaitable
        except StoreError as exc:
            logger.warning(
                "rename.step.failed",
                extra={"step": step, "user_id": user_id, "error_code": exc.code},
            )
            raise exc.with_step(step)

    async def _verify_password(self, user_id: str, supplied_password: str) -> None:
        verified = await self._step(
            "verify_password",
            user_id,
            self.password_verifier.verify(user_id, supplied_password),
        )
        if not verified:
            raise AuthenticationError(
                code="incorrect_password",
                message="Your password was incorrect.",
            )

    async def _prepare(
        self,
        user_id: str,
        candidate_user_name: str | None,
        confirm_user_name: str | None,
        supplied_password: str,
    ) -> PendingRename:
        """Steps 1-5: everything before the first write."""
        await self._verify_password(user_id, supplied_password)

        validate_user_name_change(
            candidate_user_name,
            confirm_user_name,
            min_chars=self.min_chars,
            max_chars=self.max_chars,
        )

        sanitized = sanitize_user_name(candidate_user_name)
        validate_sanitized_user_name(sanitized, min_chars=self.min_chars, max_chars=self.max_chars)

        record = await self._step("fetch_user_record", user_id, self.store.get(user_path(user_id)))
        if not isinstance(record, dict):
            raise NotFoundError(
                code="user_not_found",
                message="Failed to update username: account record not found.",
                details={"user_id": user_id, "step": "fetch_user_record"},
            )

        old_user_name = record.get("userName")
        owner = await self._step(
            "check_user_name_available",
            user_id,
            self.store.get(name_index_entry_path(sanitized)),
        )
        if owner is not None and owner != user_id:
            raise ConflictError(
                code="user_name_taken",
                message="Username is already taken!",
                details={"new_user_name": sanitized, "step": "check_user_name_available"},
            )

        return PendingRename(
            user_id=user_id,
            old_user_name=old_user_name,
            candidate_user_name=sanitized,
            indexed_owner=owner,
            sanitized_user_record={**record, "userName": sanitized},
            original_user_record=record,
        )

    async def _write_name_index(self, user_id: str, user_name: str) -> None:
        """Step 6b: point ``user_name`` at ``user_id`` and drop the user's other names."""
        if not self.store.supports_conditional_writes:
            index = await self.store.get(NAME_INDEX_PATH)
            await self.store.put(NAME_INDEX_PATH, apply_name_to_index(index, user_id, user_name))
            return

        for attempt in range(1, self.index_cas_attempts + 1):
            index, etag = await self.store.get_with_etag(NAME_INDEX_PATH)
            updated = apply_name_to_index(index, user_id, user_name)
            if await self.store.put_if_match(NAME_INDEX_PATH, updated, etag):
                return
            logger.info(
                "rename.index_cas_retry",
                extra={"user_id": user_id, "attempt": attempt},
            )

        raise StoreRejected(
            code="name_index_contention",
            message="Username index kept changing during the update.",
            details={"actual_value": self.index_cas_attempts},
        )

    async def _compensate(self, pending: PendingRename) -> bool:
        """Revert step 6a once. Returns whether the revert was written."""
        try:
            await self.store.put(user_path(pending.user_id), pending.original_user_record)
        except StoreError as exc:
            logger.error(
                "rename.compensation_failed",
                extra={"user_id": pending.user_id, "error_code": exc.code},
            )
            return False
        logger.info("rename.compensated", extra={"user_id": pending.user_id})
        return True

    async def _commit(self, pending: PendingRename) -> RenameResult:
        """Step 6: the dual write. Runs shielded from caller cancellation."""
        await self._step(
            "write_user_record",
            pending.user_id,
            self.store.put(user_path(pending.user_id), pending.sanitized_user_record),
        )

        try:
            await self._step(
                "write_name_index",
                pending.user_id,
                self._write_name_index(pending.user_id, pending.candidate_user_name),
            )
        except (StoreError, ConflictError) as exc:
            compensated = False
            if self.compensate_on_partial_failure:
                compensated = await self._compensate(pending)

            logger.error(
                "rename.partial_failure",
                extra={
                    "user_id": pending.user_id,
                    "old_user_name": pending.old_user_name,
                    "new_user_name": pending.candidate_user_name,
                    "cause": exc.code,
                    "compensation_attempted": self.compensate_on_partial_failure,
                    "compensation_succeeded": compensated,
                },
            )
            details: dict[str, Any] = {
                "step": "write_name_index",
                "user_id": pending.user_id,
                "new_user_name": pending.candidate_user_name,
                "cause": exc.code,
                "compensation_attempted": self.compensate_on_partial_failure,
                "compensation_succeeded": compensated,
            }
            if pending.old_user_name is not None:
                details["old_user_name"] = pending.old_user_name
            raise PartialFailure(
                code="partial_failure",
                message=(
                    "Your username was saved but the username directory could not be "
                    f"updated ({exc.message}). Please retry or contact support."
                ),
                details=details,  # type: ignore[arg-type]
            ) from exc

        return RenameResult(
            new_user_name=pending.candidate_user_name,
            previous_user_name=pending.old_user_name,
        )

    async def _commit_detached_from_caller(self, pending: PendingRename) -> RenameResult:
        """Run the dual write so that cancelling the caller cannot interrupt it.

        When the caller is cancelled mid-write the commit keeps running, and
        its outcome is logged and notified once it settles.
        """
        commit = asyncio.ensure_future(self._commit(pending))
        try:
            return await asyncio.shield(commit)
        except asyncio.CancelledError:
            logger.warning("rename.caller_cancelled", extra={"user_id": pending.user_id})
            commit.add_done_callback(functools.partial(self._report_detached_commit, pending.user_id))
            raise

    def _report_detached_commit(self, user_id: str, commit: asyncio.Future) -> None:
        if commit.cancelled():
            logger.error("rename.commit_cancelled", extra={"user_id": user_id})
            self.notifier.notify(INTERRUPTED_MESSAGE, False)
            return

        exc = commit.exception()
        if exc is None:
            result = commit.result()
            logger.info(
                "rename.success",
                extra={"user_id": user_id, "new_user_name": result.new_user_name, "detached": True},
            )
            self.notifier.notify(SUCCESS_MESSAGE, True)
        elif isinstance(exc, AppError):
            logger.warning(
                "rename.failed",
                extra={
                    "user_id": user_id,
                    "error_code": exc.code,
                    "error_type": type(exc).__name__,
                    "detached": True,
                },
            )
            self.notifier.notify(exc.message, False)
        else:
            logger.error(
                "rename.commit_crashed",
                extra={"user_id": user_id, "error_type": type(exc).__name__},
                exc_info=exc,
            )
            self.notifier.notify(INTERRUPTED_MESSAGE, False)

    async def rename_user(
        self,
        user_id: str,
        candidate_user_name: str | None,
        confirm_user_name: str | None,
        supplied_password: str,
    ) -> RenameResult:
        """Change a user's name end to end.

        Args:
            user_id: Id of the account being renamed.
            candidate_user_name: New name as typed.
            confirm_user_name: Confirmation as typed.
            supplied_password: Current password.

        Returns:
            RenameResult with the sanitized name actually stored.

        Raises:
            InvalidFormatError: Bad user id, or candidate length/format.
            AuthenticationError: Wrong password.
            MismatchError: Candidate and confirmation differ.
            NotFoundError: No record at ``users/<id>``.
            ConflictError: Name already held by another user.
            StoreUnavailable / StoreRejected: Store failure before any change was
                committed; ``details["step"]`` names the failing step.
            PartialFailure: Record written, index not.
        """
        logger.info("rename.start", extra={"user_id": user_id})
        try:
            validate_path_segment(user_id, field="user_id")
            pending = await self._prepare(
                user_id, candidate_user_name, confirm_user_name, supplied_password
            )

            if (
                pending.old_user_name == pending.candidate_user_name
                and pending.indexed_owner == user_id
            ):
                result = RenameResult(
                    new_user_name=pending.candidate_user_name,
                    previous_user_name=pending.old_user_name,
                    changed=False,
                )
            else:
                result = await self._commit_detached_from_caller(pending)
        except AppError as exc:
            logger.warning(
                "rename.failed",
                extra={
                    "user_id": user_id,
                    "error_code": exc.code,
                    "error_type": type(exc).__name__,
                },
            )
            self.notifier.notify(exc.message, False)
            raise

        logger.info(
            "rename.success",
            extra={
                "user_id": user_id,
                "new_user_name": result.new_user_name,
                "changed": result.changed,
            },
        )
        self.notifier.notify(SUCCESS_MESSAGE if result.changed else UNCHANGED_MESSAGE, True)
        return result

    async def retry_index_write(self, user_id: str) -> str:
        """Re-run step 6b alone from the user's current record.

        This is the recovery path after a PartialFailure: the record already
        holds the new name, so only the index is brought in line with it.

        Returns:
            The username now indexed for the user.

        Raises:
            NotFoundError: No record, or the record has no username.
            ConflictError: The name is indexed to another user (needs reconciliation).
            StoreUnavailable / StoreRejected: Store failure.
        """
        try:
            validate_path_segment(user_id, field="user_id")
            record = await self._step("fetch_user_record", user_id, self.store.get(user_path(user_id)))
            user_name = record.get("userName") if isinstance(record, dict) else None
            if not user_name:
                raise NotFoundError(
                    code="user_not_found",
                    message="No username recorded for this account.",
                    details={"user_id": user_id, "step": "fetch_user_record"},
                )
            await self._step(
                "write_name_index",
                user_id,
                self._write_name_index(user_id, user_name),
            )
        except AppError as exc:
            logger.warning(
                "rename.index_retry_failed",
                extra={"user_id": user_id, "error_code": exc.code},
            )
            self.notifier.notify(exc.message, False)
            raise

        logger.info("rename.index_retried", extra={"user_id": user_id, "user_name": user_name})
        self.notifier.notify(INDEX_REPAIRED_MESSAGE, True)
        return user_name
