import pytest

from engine import EngineError, KVEngine
from storage import TodoStore


class FlakyEngine(KVEngine):
    """KVEngine whose writes fail for keys listed in fail_puts."""

    def __init__(self, path):
        super().__init__(path)
        self.fail_puts = set()
        self.fail_gets = set()

    def put(self, key, value):
        if key in self.fail_puts:
            raise EngineError(f'disk full writing {key}')
        super().put(key, value)

    def get(self, key):
        if key in self.fail_gets:
            raise EngineError(f'io error reading {key}')
        return super().get(key)


@pytest.fixture()
def db_path(tmp_path):
    return tmp_path / 'data' / 'todo.db'


@pytest.fixture()
def store(db_path):
    s = TodoStore.open(db_path)
    yield s
    s.close()


@pytest.fixture()
def flaky_store(db_path):
    s = TodoStore(FlakyEngine(db_path))
    yield s
    s.close()
