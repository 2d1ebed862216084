"""Pydantic schemas for username changes and index reconciliation."""

from __future__ import annotations

from pydantic import BaseModel, Field

from app.schemas.notifications import NotificationItem


class RenameResult(BaseModel):
    """Successful outcome of a username change."""

    new_user_name: str = Field(..., description="Sanitized username now stored.")
    previous_user_name: str | None = Field(None, description="Username before the change.")
    changed: bool = Field(
        True,
        description="False when the user already had this name (nothing was written).",
    )


class RenameUserRequest(BaseModel):
    new_user_name: str = Field(..., description="Desired username (5-10 characters).")
    confirm_user_name: str = Field(..., description="Must equal new_user_name.")
    password: str = Field(..., description="Current account password.")


class RenameUserResponse(BaseModel):
    user_name: str
    previous_user_name: str | None = None
    changed: bool
    notifications: list[NotificationItem] = Field(default_factory=list)


class RetryIndexWriteResponse(BaseModel):
    user_name: str
    notifications: list[NotificationItem] = Field(default_factory=list)


class DuplicateUserName(BaseModel):
    user_name: str
    user_ids: list[str]
    indexed_user_id: str | None = None


class ReconciliationReport(BaseModel):
    """Findings of one NameIndex consistency scan.

    stale: index names whose user now has a different name.
    orphaned: index names pointing at users that no longer exist.
    missing: users whose name is not in the index (name -> user id).
    duplicates: names held by more than one user record.
    """

    users_scanned: int = 0
    index_entries_scanned: int = 0
    stale: dict[str, str] = Field(default_factory=dict)
    orphaned: dict[str, str] = Field(default_factory=dict)
    missing: dict[str, str] = Field(default_factory=dict)
    duplicates: list[DuplicateUserName] = Field(default_factory=list)
    repaired: bool = False

    @property
    def is_consistent(self) -> bool:
        return not (self.stale or self.orphaned or self.missing or self.duplicates)
