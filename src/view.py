"""Terminal rendering of a todo listing: ids, done marks, wrapped titles."""
import re
import shutil
from typing import Iterable, List, Sequence

from models import Todo
from theme import color, HEADER_COLOR, DONE_COLOR, ID_COLOR, EMPTY_COLOR, BOLD, STRIKE

HEADER_TITLE = "TODO"
MIN_WIDTH = 24
DONE_MARK = "[✓] "
OPEN_MARK = "[ ] "
ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")


def display(todos: Sequence[Todo]) -> None:
    width = shutil.get_terminal_size((80, 30)).columns
    for line in render_lines(todos, width):
        print(line)


def render_lines(todos: Sequence[Todo], width: int = 80) -> List[str]:
    width = max(MIN_WIDTH, width)
    lines = [color(HEADER_TITLE, HEADER_COLOR, BOLD), color('-' * width, HEADER_COLOR)]
    if not todos:
        lines.append(color('(empty)', EMPTY_COLOR))
        return lines
    id_width = max(len(str(t.id)) for t in todos)
    for todo in todos:
        lines.extend(_render_todo(todo, width, id_width))
    done = sum(1 for t in todos if t.done)
    lines.append('')
    lines.append(color(f'{len(todos)} items, {done} done', EMPTY_COLOR))
    return lines


def _render_todo(todo: Todo, width: int, id_width: int) -> List[str]:
    prefix_visible = f"{todo.id}.".rjust(id_width + 1) + ' ' + (DONE_MARK if todo.done else OPEN_MARK)
    prefix_colored = (color(f"{todo.id}.".rjust(id_width + 1), ID_COLOR, BOLD) + ' '
                      + color(DONE_MARK if todo.done else OPEN_MARK, DONE_COLOR[todo.done]))
    styles = (DONE_COLOR[todo.done], STRIKE) if todo.done else (DONE_COLOR[todo.done],)
    wrapped = wrap_words(todo.title or '<untitled>', max(1, width - len(prefix_visible)))
    indent = ' ' * len(prefix_visible)
    out: List[str] = []
    for idx, raw_line in enumerate(wrapped):
        out.append((prefix_colored if idx == 0 else indent) + color(raw_line, *styles))
    return out


def wrap_words(text: str, limit: int) -> List[str]:
    """Greedy word wrap; a single word longer than limit is hard-split."""
    lines: List[str] = []
    current = ''
    for w in _split_long(text.split(), limit):
        candidate = w if not current else current + ' ' + w
        if len(candidate) <= limit:
            current = candidate
        else:
            if current:
                lines.append(current)
            current = w
    if current:
        lines.append(current)
    return lines or ['']


def _split_long(words: Iterable[str], limit: int) -> Iterable[str]:
    for w in words:
        while len(w) > limit:
            yield w[:limit]
            w = w[limit:]
        if w:
            yield w


def visible_len(s: str) -> int:
    return len(ANSI_RE.sub('', s))
