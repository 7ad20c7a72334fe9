"""Persistence for case records.

The engine talks to a `CaseStore`; `InMemoryCaseStore` is the
process-local implementation used by the developer script and tests.
Records are copied on the way in and out so callers never share state
with the store.
"""

import logging
import threading
import uuid
from typing import Dict, List, Optional, Protocol

from game.errors import CaseNotFoundError
from game.models import CaseRecord, CaseStatus

logger = logging.getLogger(__name__)


class CaseStore(Protocol):
    def create_case(self, record: CaseRecord) -> str:
        ...

    def get_case(self, case_id: str) -> Optional[CaseRecord]:
        ...

    def update_case(self, case_id: str, **fields) -> None:
        ...

    def delete_case(self, case_id: str) -> bool:
        ...

    def list_cases(self, user_id: str, status: Optional[CaseStatus] = None) -> List[CaseRecord]:
        ...


class InMemoryCaseStore:
    """Thread-safe dict-backed case store."""

    def __init__(self):
        self._cases: Dict[str, CaseRecord] = {}
        self._lock = threading.Lock()

    def create_case(self, record: CaseRecord) -> str:
        case_id = record.id or uuid.uuid4().hex
        stored = record.model_copy(update={"id": case_id}, deep=True)
        with self._lock:
            self._cases[case_id] = stored
        logger.info("[CASE] Created case %s for user %s", case_id, record.user_id)
        return case_id

    def get_case(self, case_id: str) -> Optional[CaseRecord]:
        with self._lock:
            record = self._cases.get(case_id)
            return record.model_copy(deep=True) if record else None

    def update_case(self, case_id: str, **fields) -> None:
        """Apply a partial update. Fields passed as None are left untouched."""
        updates = {k: v for k, v in fields.items() if v is not None}
        unknown = set(updates) - set(CaseRecord.model_fields)
        if unknown:
            raise ValueError(f"Unknown case fields: {sorted(unknown)}")
        with self._lock:
            record = self._cases.get(case_id)
            if record is None:
                raise CaseNotFoundError(case_id)
            merged = record.model_dump()
            merged.update(updates)
            self._cases[case_id] = CaseRecord.model_validate(merged).model_copy(deep=True)

    def delete_case(self, case_id: str) -> bool:
        with self._lock:
            removed = self._cases.pop(case_id, None)
        if removed is not None:
            logger.info("[CASE] Deleted case %s", case_id)
        return removed is not None

    def list_cases(self, user_id: str, status: Optional[CaseStatus] = None) -> List[CaseRecord]:
        """A user's cases, newest first."""
        with self._lock:
            records = [
                r.model_copy(deep=True)
                for r in self._cases.values()
                if r.user_id == user_id and (status is None or r.status == status)
            ]
        return sorted(records, key=lambda r: r.created_at or "", reverse=True)
