"""Data models for the todo application.

Exposes the Todo dataclass and its JSON encoding. Stored records use the
field names "id", "title" and "done"; that shape is what sits under each
``todo_<id>`` key and must stay stable across versions.
"""
from __future__ import annotations
import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

MAX_ID = 2 ** 64 - 1


@dataclass
class Todo:
    """A single todo item.

    Fields:
        title: Short text set at creation; never edited afterwards.
        id: Unsigned 64-bit id assigned by the store (None until then).
        done: Completion flag, flipped by toggle_done().
    """
    title: str
    id: Optional[int] = None
    done: bool = False

    def toggle_done(self) -> None:
        self.done = not self.done

    # listings sort by id, whatever order the engine hands keys back in
    def __lt__(self, other: "Todo") -> bool:
        if not isinstance(other, Todo):
            return NotImplemented
        return _sort_id(self) < _sort_id(other)

    # -------------------- serialization --------------------
    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'title': self.title, 'done': self.done}

    def to_json(self) -> bytes:
        """Encode as compact JSON bytes; the id must already be assigned."""
        if self.id is None:
            raise ValueError('cannot encode a todo without an id')
        return json.dumps(self.to_dict(), separators=(',', ':'), ensure_ascii=False).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> "Todo":
        """Decode bytes written by to_json().

        Raises ValueError when the payload is not a JSON object carrying
        an integer id, a string title and a boolean done flag.
        """
        try:
            raw = json.loads(data.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ValueError(f'invalid todo encoding: {exc}') from exc
        if not isinstance(raw, dict):
            raise ValueError('todo encoding is not an object')
        for field in ('id', 'title', 'done'):
            if field not in raw:
                raise ValueError(f'todo encoding missing field {field!r}')
        tid, title, done = raw['id'], raw['title'], raw['done']
        # bool is an int subclass
        if isinstance(tid, bool) or not isinstance(tid, int) or not 0 <= tid <= MAX_ID:
            raise ValueError(f'invalid todo id: {tid!r}')
        if not isinstance(title, str):
            raise ValueError(f'invalid todo title: {title!r}')
        if not isinstance(done, bool):
            raise ValueError(f'invalid todo done flag: {done!r}')
        return cls(title=title, id=tid, done=done)

    def __repr__(self) -> str:  # pragma: no cover - convenience only
        return f"Todo(id={self.id}, title={self.title!r}, done={self.done})"


def _sort_id(todo: Todo) -> int:
    return -1 if todo.id is None else todo.id
