from casecraft.core.config import get_settings
from casecraft.services.testcase_service import TestCaseService
from casecraft.services.testcase_store import TestCaseStore

# Single shared instances so every request goes through the same store lock.
_store: TestCaseStore | None = None
_service: TestCaseService | None = None


def get_store() -> TestCaseStore:
    global _store
    if _store is None:
        _store = TestCaseStore(get_settings().data_file)
    return _store


def get_testcase_service() -> TestCaseService:
    global _service
    if _service is None:
        _service = TestCaseService()
    return _service
