"""Persistence for todos: key layout, id allocation, list/add/toggle/delete.

Key layout inside the engine:
    nextid      -> next unallocated id, 8-byte big-endian unsigned int
    todo_<id>   -> JSON record {"id": .., "title": .., "done": ..}

Ids are gap-tolerant: the counter is advanced (durably) before the record
is written, so a failed or interrupted add burns an id but can never let
two live records share one.
"""
from __future__ import annotations
import logging
import struct
import threading
from pathlib import Path
from typing import Callable, List, Union

from engine import EngineError, KeyNotFoundError, KVEngine
from models import MAX_ID, Todo

logger = logging.getLogger(__name__)

COUNTER_KEY = 'nextid'
TODO_PREFIX = 'todo_'
_COUNTER = struct.Struct('>Q')


class StoreError(Exception):
    """Base class for every failure reported by TodoStore."""


class StorageUnavailableError(StoreError):
    """The key-value engine failed to read or write."""


class DecodeError(StoreError):
    """Stored bytes do not have the shape of a todo record or counter."""


class TodoNotFoundError(StoreError):
    def __init__(self, todo_id: int):
        super().__init__(f'todo {todo_id} not found')
        self.todo_id = todo_id


def todo_key(todo_id: int) -> str:
    return f'{TODO_PREFIX}{todo_id}'


def encode_counter(value: int) -> bytes:
    return _COUNTER.pack(value)


def decode_counter(data: bytes) -> int:
    if len(data) != _COUNTER.size:
        raise DecodeError(f'counter must be {_COUNTER.size} bytes, got {len(data)}')
    return _COUNTER.unpack(data)[0]


class IdAllocator:
    """Hands out ids from the persisted counter, one caller at a time."""

    def __init__(self, engine: KVEngine):
        self._engine = engine
        self._lock = threading.Lock()

    def peek(self) -> int:
        """Return the next id that would be allocated, without taking it."""
        with self._lock:
            return self._read()

    def allocate_next(self) -> int:
        """Reserve and return a fresh id.

        The advanced counter is on disk before the id is handed out.
        """
        with self._lock:
            current = self._read()
            # the counter itself must fit in 8 bytes
            if current >= MAX_ID:
                raise StoreError('id space exhausted')
            try:
                self._engine.put(COUNTER_KEY, encode_counter(current + 1))
            except EngineError as exc:
                raise StorageUnavailableError(f'error storing {COUNTER_KEY}: {exc}') from exc
            logger.debug("allocated id %d", current)
            return current

    def _read(self) -> int:
        try:
            raw = self._engine.get(COUNTER_KEY)
        except KeyNotFoundError:
            return 0
        except EngineError as exc:
            raise StorageUnavailableError(f'error getting {COUNTER_KEY}: {exc}') from exc
        return decode_counter(raw)


class TodoStore:
    """All todo reads and writes against the key-value engine.

    Thread-safe for callers inside one process: the allocator serializes
    id allocation and a store lock serializes record mutation and listing.
    """

    def __init__(self, engine: KVEngine):
        self.engine = engine
        self.allocator = IdAllocator(engine)
        self._lock = threading.RLock()

    @classmethod
    def open(cls, path: Union[str, Path]) -> "TodoStore":
        try:
            return cls(KVEngine(path))
        except EngineError as exc:
            raise StorageUnavailableError(str(exc)) from exc

    # -------------------- queries --------------------
    def list(self) -> List[Todo]:
        """Return every todo, ascending by id.

        A record that fails to decode aborts the listing with DecodeError;
        no partial list is ever returned.
        """
        todos: List[Todo] = []

        def visit(key: str) -> None:
            if key == COUNTER_KEY or not key.startswith(TODO_PREFIX):
                return
            try:
                data = self.engine.get(key)
            except KeyNotFoundError:
                return
            todos.append(self._decode(key, data))

        with self._lock:
            try:
                self.engine.fold(visit)
            except EngineError as exc:
                raise StorageUnavailableError(f'error listing todos: {exc}') from exc
        todos.sort()
        return todos

    def get(self, todo_id: int) -> Todo:
        key = todo_key(todo_id)
        with self._lock:
            return self._decode(key, self._read(todo_id))

    def next_id(self) -> int:
        return self.allocator.peek()

    # -------------------- mutations --------------------
    def add(self, title: str) -> Todo:
        """Create a todo under a freshly allocated id.

        If the record write fails the id stays burned and the error
        propagates; the counter never lags behind a stored record.
        """
        todo = Todo(title)
        todo.id = self.allocator.allocate_next()
        key = todo_key(todo.id)
        with self._lock:
            try:
                self.engine.put(key, todo.to_json())
            except EngineError as exc:
                raise StorageUnavailableError(f'error storing {key}: {exc}') from exc
        logger.debug("added %s", key)
        return todo

    def update(self, todo_id: int, mutate: Callable[[Todo], None]) -> Todo:
        """Read, mutate and write back one record as a single step.

        Returns the record as stored after the mutation. The id and title
        are restored if mutate touched them.
        """
        key = todo_key(todo_id)
        with self._lock:
            todo = self._decode(key, self._read(todo_id))
            title = todo.title
            mutate(todo)
            todo.id, todo.title = todo_id, title
            try:
                self.engine.put(key, todo.to_json())
            except EngineError as exc:
                raise StorageUnavailableError(f'error storing {key}: {exc}') from exc
        return todo

    def toggle(self, todo_id: int) -> Todo:
        todo = self.update(todo_id, Todo.toggle_done)
        logger.debug("toggled %s (done=%s)", todo_key(todo_id), todo.done)
        return todo

    def delete(self, todo_id: int) -> None:
        key = todo_key(todo_id)
        with self._lock:
            try:
                self.engine.delete(key)
            except KeyNotFoundError:
                raise TodoNotFoundError(todo_id) from None
            except EngineError as exc:
                raise StorageUnavailableError(f'error deleting {key}: {exc}') from exc
        logger.debug("deleted %s", key)

    def close(self) -> None:
        try:
            self.engine.close()
        except EngineError as exc:
            raise StorageUnavailableError(str(exc)) from exc

    # -------------------- helpers --------------------
    def _read(self, todo_id: int) -> bytes:
        key = todo_key(todo_id)
        try:
            return self.engine.get(key)
        except KeyNotFoundError:
            raise TodoNotFoundError(todo_id) from None
        except EngineError as exc:
            raise StorageUnavailableError(f'error getting {key}: {exc}') from exc

    @staticmethod
    def _decode(key: str, data: bytes) -> Todo:
        try:
            return Todo.from_json(data)
        except ValueError as exc:
            raise DecodeError(f'{key}: {exc}') from exc

    def __enter__(self) -> "TodoStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
