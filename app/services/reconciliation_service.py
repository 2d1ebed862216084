"""Consistency scan for the username index.

Renames from different clients are not coordinated, and a rename can stop
between its two writes. Both leave the ``userIDByUsername`` index out of line
with the user records. The reconciler compares the two and optionally
repairs what can be repaired without guessing:

- stale and orphaned index entries are dropped,
- users missing from the index are added when no other user holds the name,
- names held by several users are only reported; the account that keeps the
  name is a product decision.

Running it twice in a row is safe: the second run finds nothing to repair.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any

from app.adapters.store.base import NAME_INDEX_PATH, USERS_PATH, AbstractKeyValueStore
from app.core.errors import StoreRejected
from app.schemas.identity import DuplicateUserName, ReconciliationReport

logger = logging.getLogger(__name__)


def _as_mapping(document: Any, *, what: str) -> dict[str, Any]:
    if document is None:
        return {}
    if not isinstance(document, dict):
        raise StoreRejected(
            code=f"{what}_malformed",
            message=f"{what.replace('_', ' ').capitalize()} document is not a mapping",
        )
    return document


def build_report(users: dict[str, Any], index: dict[str, Any]) -> ReconciliationReport:
    """Compare user records with the index (pure function, no I/O)."""
    name_by_user: dict[str, str] = {}
    holders: dict[str, list[str]] = defaultdict(list)
    for user_id, record in users.items():
        if isinstance(record, dict) and record.get("userName"):
            name_by_user[user_id] = record["userName"]
            holders[record["userName"]].append(user_id)

    report = ReconciliationReport(users_scanned=len(users), index_entries_scanned=len(index))

    for user_name, user_id in index.items():
        if user_id not in users:
            report.orphaned[user_name] = user_id
        elif name_by_user.get(user_id) != user_name:
            report.stale[user_name] = user_id

    for user_name, user_ids in sorted(holders.items()):
        if len(user_ids) > 1:
            report.duplicates.append(
                DuplicateUserName(
                    user_name=user_name,
                    user_ids=sorted(user_ids),
                    indexed_user_id=index.get(user_name),
                )
            )
        elif index.get(user_name) != user_ids[0]:
            report.missing[user_name] = user_ids[0]

    return report


def repaired_index(index: dict[str, Any], report: ReconciliationReport) -> dict[str, Any]:
    """Index with stale/orphaned entries dropped and missing entries added."""
    updated = {
        name: user_id
        for name, user_id in index.items()
        if name not in report.stale and name not in report.orphaned
    }
    updated.update(report.missing)
    return updated


class NameIndexReconciler:
    """Detects and repairs drift between user records and the username index."""

    def __init__(self, store: AbstractKeyValueStore) -> None:
        self.store = store

    async def reconcile(self, repair: bool = False) -> ReconciliationReport:
        """Scan users and the index; write a repaired index when asked to.

        Args:
            repair: Write the repaired index (only when something changed).

        Returns:
            ReconciliationReport describing what was found.

        Raises:
            StoreUnavailable / StoreRejected: Store failure, malformed
                documents, or the index changed while repairing.
        """
        users = _as_mapping(await self.store.get(USERS_PATH), what="users")

        etag: str | None = None
        if self.store.supports_conditional_writes:
            raw_index, etag = await self.store.get_with_etag(NAME_INDEX_PATH)
        else:
            raw_index = await self.store.get(NAME_INDEX_PATH)
        index = _as_mapping(raw_index, what="name_index")

        report = build_report(users, index)
        logger.info(
            "reconcile.scanned",
            extra={
                "users_scanned": report.users_scanned,
                "index_entries_scanned": report.index_entries_scanned,
                "stale": len(report.stale),
                "orphaned": len(report.orphaned),
                "missing": len(report.missing),
                "duplicates": len(report.duplicates),
            },
        )
        if report.duplicates:
            logger.warning(
                "reconcile.duplicate_user_names",
                extra={"user_names": [d.user_name for d in report.duplicates]},
            )

        if not repair:
            return report

        updated = repaired_index(index, report)
        if updated == index:
            return report

        if etag is not None:
            written = await self.store.put_if_match(NAME_INDEX_PATH, updated, etag)
            if not written:
                raise StoreRejected(
                    code="name_index_contention",
                    message="Username index changed during reconciliation; run it again.",
                    details={"step": "write_name_index"},
                )
        else:
            await self.store.put(NAME_INDEX_PATH, updated)

        report.repaired = True
        logger.info("reconcile.repaired", extra={"index_entries": len(updated)})
        return report
