from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import Protocol

VIEW = "view"
EDIT = "edit"
DELETE = "delete"
ACTIONS = {VIEW, EDIT, DELETE}

# Record id for checks that must hold for every record of a data source.
ANY_RECORD = "*"


@dataclass(frozen=True)
class Subject:
    """What an action is checked against: a view/data source, optionally one record of it."""

    data_source: str
    record_id: str | None = None
    owner_id: str | None = None


class AccessController(Protocol):
    user_id: str | None

    @property
    def scope(self) -> str:
        ...

    def can(self, action: str, subject: Subject | None = None) -> bool:
        ...


class ReadOnlyAccessController:
    """Anonymous callers: viewing only."""

    user_id: str | None = None

    @property
    def scope(self) -> str:
        return "anonymous"

    def can(self, action: str, subject: Subject | None = None) -> bool:
        return action == VIEW


# Role -> actions on any record.
DEFAULT_ROLE_ACTIONS: dict[str, set[str]] = {
    "ADMIN": set(ACTIONS),
    "EDITOR": set(ACTIONS),
    "AUTHOR": {VIEW},
    "SUBSCRIBER": {VIEW},
}

# Role -> extra actions on records the caller owns.
OWNER_ROLE_ACTIONS: dict[str, set[str]] = {
    "AUTHOR": {EDIT, DELETE},
}


class RoleAccessController:
    def __init__(
        self,
        role: str,
        user_id: str | None = None,
        rules: dict[str, dict[str, set[str]]] | None = None,
    ):
        self.role = str(role or "").strip().upper()
        self.user_id = str(user_id).strip() if user_id not in (None, "") else None
        # Per data source overrides: data source / view id -> role -> actions.
        self.rules = rules or {}

    @property
    def scope(self) -> str:
        scope = f"{self.role or 'NONE'}:{self.user_id or '-'}"
        if not self.rules:
            return scope
        # Callers with different rules may see different rows.
        encoded = json.dumps(self.rules, sort_keys=True, default=sorted)
        return f"{scope}:{hashlib.sha1(encoded.encode('utf-8')).hexdigest()[:8]}"

    def _overrides(self, subject: Subject | None) -> dict[str, set[str]] | None:
        if subject is None:
            return None
        return self.rules.get(subject.data_source)

    def _owns(self, subject: Subject | None) -> bool:
        if subject is None or subject.owner_id in (None, "") or self.user_id is None:
            return False
        return str(subject.owner_id) == self.user_id

    def can(self, action: str, subject: Subject | None = None) -> bool:
        if self.role == "ADMIN":
            return True
        overrides = self._overrides(subject)
        if overrides is not None:
            # A per-source rule replaces both the role defaults and the owner grants.
            return action in overrides.get(self.role, set())
        if action in DEFAULT_ROLE_ACTIONS.get(self.role, set()):
            return True
        if action not in OWNER_ROLE_ACTIONS.get(self.role, set()):
            return False
        # Source-level check: the caller may act on the records it owns.
        if subject is None or subject.record_id is None:
            return True
        return self._owns(subject)


def any_record(data_source: str) -> Subject:
    return Subject(data_source, record_id=ANY_RECORD)
