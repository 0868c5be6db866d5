from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional
from uuid import UUID, uuid4

from pydantic import ValidationError

from casecraft.schemas.testcase import DeleteOutcome, TestCase, utc_now


logger = logging.getLogger(__name__)

# Never changed by update().
_IMMUTABLE_FIELDS: frozenset[str] = frozenset({"id", "created_at", "updated_at"})


class StorageError(RuntimeError):
    """The backing JSON file could not be read or written."""


class DuplicateTestCaseError(ValueError):
    """A record with the same id is already stored."""


class TestCaseStore:
    """
    Durable mapping of test case id to record, kept in one JSON file.

    Every mutation is a full read-modify-write of the file. Mutations are
    serialized through one lock per store and the file is replaced
    atomically, so concurrent requests in one process never lose each
    other's writes. Separate processes sharing the file still race.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read_records(self) -> List[TestCase]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise StorageError(f"Failed to read test cases from {self._path}: {exc}") from exc
        try:
            data = json.loads(raw)
            if not isinstance(data, list):
                raise ValueError(f"expected a JSON array, got {type(data).__name__}")
            return [TestCase.model_validate(item) for item in data]
        except (ValueError, ValidationError) as exc:
            raise StorageError(f"Test case file {self._path} is corrupt: {exc}") from exc

    def _write_records(self, records: List[TestCase]) -> None:
        payload = json.dumps(
            [record.model_dump(mode="json", by_alias=True) for record in records],
            indent=2,
            ensure_ascii=False,
        )
        tmp_path = self._path.with_name(f".{self._path.name}.{uuid4().hex}.tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(payload, encoding="utf-8")
            os.replace(tmp_path, self._path)
        except OSError as exc:
            tmp_path.unlink(missing_ok=True)
            raise StorageError(f"Failed to write test cases to {self._path}: {exc}") from exc

    async def _load(self) -> List[TestCase]:
        return await asyncio.to_thread(self._read_records)

    async def _persist(self, records: List[TestCase]) -> None:
        await asyncio.to_thread(self._write_records, records)

    async def get_all(self) -> List[TestCase]:
        return await self._load()

    async def get_by_id(self, test_case_id: UUID) -> Optional[TestCase]:
        for record in await self._load():
            if record.id == test_case_id:
                return record
        return None

    async def save(self, records: Iterable[TestCase]) -> List[TestCase]:
        """Append records and return exactly the ones added."""
        new_records = list(records)
        async with self._lock:
            existing = await self._load()
            known_ids = {record.id for record in existing}
            for record in new_records:
                if record.id in known_ids:
                    raise DuplicateTestCaseError(f"Test case {record.id} already exists")
                known_ids.add(record.id)
            await self._persist(existing + new_records)
        logger.info(
            "Saved %d test cases",
            len(new_records),
            extra={"count": len(new_records), "total": len(existing) + len(new_records)},
        )
        return new_records

    async def update(
        self,
        test_case_id: UUID,
        changes: Mapping[str, Any],
    ) -> Optional[TestCase]:
        """
        Merge ``changes`` (snake_case field names) over the stored record and
        bump ``updated_at``. Returns None without writing when the id is unknown.
        """
        fields = {k: v for k, v in changes.items() if k not in _IMMUTABLE_FIELDS}
        async with self._lock:
            records = await self._load()
            for index, record in enumerate(records):
                if record.id == test_case_id:
                    break
            else:
                return None

            merged = TestCase.model_validate(
                {
                    **record.model_dump(),
                    **fields,
                    "updated_at": max(utc_now(), record.created_at),
                }
            )
            records[index] = merged
            await self._persist(records)
        logger.info(
            "Updated test case %s",
            test_case_id,
            extra={"fields": sorted(fields)},
        )
        return merged

    async def remove(self, test_case_id: UUID) -> bool:
        async with self._lock:
            records = await self._load()
            remaining = [record for record in records if record.id != test_case_id]
            if len(remaining) == len(records):
                return False
            await self._persist(remaining)
        logger.info("Deleted test case %s", test_case_id)
        return True

    async def remove_many(self, test_case_ids: Iterable[UUID]) -> List[DeleteOutcome]:
        """
        Delete each id independently and report one outcome per id. A failed
        write for one id does not stop the remaining deletions.
        """
        outcomes: List[DeleteOutcome] = []
        for test_case_id in test_case_ids:
            try:
                deleted = await self.remove(test_case_id)
            except StorageError as exc:
                logger.warning(
                    "Failed to delete test case %s: %s",
                    test_case_id,
                    exc,
                    extra={"test_case_id": str(test_case_id)},
                )
                outcomes.append(DeleteOutcome(id=test_case_id, status="failed", error=str(exc)))
                continue
            outcomes.append(
                DeleteOutcome(id=test_case_id, status="deleted" if deleted else "not_found")
            )
        return outcomes
