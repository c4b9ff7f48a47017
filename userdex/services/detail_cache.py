"""Process-lifetime handoff of full records from the list to the detail view."""

from __future__ import annotations

from userdex.schemas.user import UserRecord


class DetailCache:
    """Keyed map from record identifier to record; never persisted, never evicted.

    A miss is a normal outcome: the detail view is simply unavailable for that
    identifier (for example when it is opened without visiting the list first).
    """

    def __init__(self) -> None:
        self._records: dict[str, UserRecord] = {}

    def put(self, identifier: str, record: UserRecord) -> None:
        self._records[identifier] = record

    def get(self, identifier: str) -> UserRecord | None:
        return self._records.get(identifier)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._records

    def __len__(self) -> int:
        return len(self._records)

    def clear(self) -> None:
        self._records.clear()
