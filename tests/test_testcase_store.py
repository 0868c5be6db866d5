import asyncio
import json

import pytest

from casecraft.services.testcase_store import (
    DuplicateTestCaseError,
    StorageError,
    TestCaseStore,
)


def test_missing_file_reads_as_empty(store):
    assert asyncio.run(store.get_all()) == []
    assert not store.path.exists()


def test_save_then_get_all_round_trip(store, make_test_case):
    first = make_test_case(title="First case")
    second = make_test_case(title="Second case", priority="Low")

    saved = asyncio.run(store.save([first, second]))
    loaded = asyncio.run(store.get_all())

    assert saved == [first, second]
    assert loaded == [first, second]


def test_file_uses_camel_case_keys(store, make_test_case):
    case = make_test_case()
    asyncio.run(store.save([case]))

    data = json.loads(store.path.read_text(encoding="utf-8"))

    assert data[0]["id"] == str(case.id)
    assert data[0]["expectedResult"] == "The user lands on the dashboard"
    assert "sourceRequirement" in data[0]
    assert "createdAt" in data[0] and "updatedAt" in data[0]


def test_save_returns_only_new_records(store, make_test_case):
    existing = make_test_case(title="Existing")
    asyncio.run(store.save([existing]))

    added = make_test_case(title="Added")
    saved = asyncio.run(store.save([added]))

    assert saved == [added]
    assert [tc.title for tc in asyncio.run(store.get_all())] == ["Existing", "Added"]


def test_duplicate_id_is_rejected_without_writing(store, make_test_case):
    case = make_test_case()
    asyncio.run(store.save([case]))
    before = store.path.read_text(encoding="utf-8")

    with pytest.raises(DuplicateTestCaseError):
        asyncio.run(store.save([make_test_case(id=case.id, title="Clone")]))

    assert store.path.read_text(encoding="utf-8") == before


def test_get_by_id(store, make_test_case):
    case = make_test_case()
    other = make_test_case(title="Other")
    asyncio.run(store.save([case, other]))

    assert asyncio.run(store.get_by_id(other.id)) == other
    assert asyncio.run(store.get_by_id(make_test_case().id)) is None


def test_update_changes_only_given_fields(store, make_test_case):
    case = make_test_case()
    asyncio.run(store.save([case]))

    updated = asyncio.run(store.update(case.id, {"status": "Approved"}))

    assert updated.status == "Approved"
    assert updated.updated_at >= case.updated_at
    assert updated.model_dump(exclude={"status", "updated_at"}) == case.model_dump(
        exclude={"status", "updated_at"}
    )
    assert asyncio.run(store.get_by_id(case.id)) == updated


def test_update_ignores_identity_and_timestamps(store, make_test_case):
    case = make_test_case()
    other = make_test_case()
    asyncio.run(store.save([case]))

    updated = asyncio.run(
        store.update(
            case.id,
            {"id": other.id, "created_at": other.created_at, "title": "Renamed"},
        )
    )

    assert updated.id == case.id
    assert updated.created_at == case.created_at
    assert updated.title == "Renamed"


def test_update_unknown_id_returns_none(store, make_test_case):
    assert asyncio.run(store.update(make_test_case().id, {"title": "x"})) is None
    assert not store.path.exists()


def test_update_with_invalid_value_raises(store, make_test_case):
    case = make_test_case()
    asyncio.run(store.save([case]))

    with pytest.raises(ValueError):
        asyncio.run(store.update(case.id, {"priority": "Urgent"}))

    assert asyncio.run(store.get_by_id(case.id)) == case


def test_remove_twice(store, make_test_case):
    case = make_test_case()
    keep = make_test_case(title="Keep me")
    asyncio.run(store.save([case, keep]))

    assert asyncio.run(store.remove(case.id)) is True
    assert asyncio.run(store.remove(case.id)) is False
    assert asyncio.run(store.get_all()) == [keep]


def test_remove_many_continues_after_a_failed_write(store, make_test_case, monkeypatch):
    cases = [make_test_case(title=f"Case {i}") for i in range(5)]
    asyncio.run(store.save(cases))

    real_write = store._write_records
    calls = {"n": 0}

    def flaky_write(records):
        calls["n"] += 1
        if calls["n"] == 2:
            raise StorageError("disk full")
        real_write(records)

    monkeypatch.setattr(store, "_write_records", flaky_write)

    ids = [cases[0].id, cases[1].id, cases[2].id]
    outcomes = asyncio.run(store.remove_many(ids))

    assert [o.status for o in outcomes] == ["deleted", "failed", "deleted"]
    assert outcomes[1].error == "disk full"
    assert [o.id for o in outcomes] == ids
    remaining = asyncio.run(store.get_all())
    assert [tc.title for tc in remaining] == ["Case 1", "Case 3", "Case 4"]


def test_remove_many_reports_not_found(store, make_test_case):
    case = make_test_case()
    asyncio.run(store.save([case]))
    missing = make_test_case().id

    outcomes = asyncio.run(store.remove_many([missing, case.id]))

    assert [o.status for o in outcomes] == ["not_found", "deleted"]


@pytest.mark.parametrize(
    "content",
    ["{not json", '{"id": "abc"}', '[{"title": "missing everything else"}]'],
)
def test_corrupt_file_raises_storage_error(tmp_path, content):
    path = tmp_path / "test-cases.json"
    path.write_text(content, encoding="utf-8")
    store = TestCaseStore(path)

    with pytest.raises(StorageError):
        asyncio.run(store.get_all())


def test_timestamps_without_offset_raise_storage_error(store, make_test_case):
    record = make_test_case().model_dump(mode="json", by_alias=True)
    record["createdAt"] = "2024-01-01T00:00:00"
    store.path.parent.mkdir(parents=True)
    store.path.write_text(json.dumps([record]), encoding="utf-8")

    with pytest.raises(StorageError):
        asyncio.run(store.update(make_test_case().id, {"status": "Approved"}))


def test_failed_write_leaves_previous_file(store, make_test_case, monkeypatch):
    case = make_test_case()
    asyncio.run(store.save([case]))

    def broken_replace(src, dst):
        raise OSError("read-only file system")

    monkeypatch.setattr("casecraft.services.testcase_store.os.replace", broken_replace)

    with pytest.raises(StorageError):
        asyncio.run(store.save([make_test_case(title="Lost")]))

    monkeypatch.undo()
    assert asyncio.run(store.get_all()) == [case]
    assert [p.name for p in store.path.parent.iterdir()] == [store.path.name]


def test_concurrent_saves_are_all_kept(store, make_test_case):
    batches = [[make_test_case(title=f"Batch {i}")] for i in range(10)]

    async def save_all():
        await asyncio.gather(*(store.save(batch) for batch in batches))
        return await store.get_all()

    stored = asyncio.run(save_all())

    assert sorted(tc.title for tc in stored) == sorted(f"Batch {i}" for i in range(10))
