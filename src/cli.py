"""Command-line interface loop over a TodoStore.

Every command goes straight to the store, so there is nothing to save on
exit: the listing on screen is always re-read from disk.
"""
import logging
from typing import Callable, Optional

from storage import StoreError, TodoNotFoundError, TodoStore
import view

logger = logging.getLogger(__name__)

# --- terminal control helpers ---
# ESC[3J (scrollback), ESC[H (home), ESC[2J (screen), ESC[H (home); 3J first
def _clear_screen() -> None:
    print("\033[3J\033[H\033[2J\033[H", end="", flush=True)


def _enter_alt_screen() -> None:
    print("\033[?1049h", end="", flush=True)


def _leave_alt_screen() -> None:
    print("\033[?1049l", end="", flush=True)


class CLI:
    def __init__(self, store: TodoStore, alt_screen: bool = True,
                 input_fn: Callable[[str], str] = input):
        self.store: TodoStore = store
        self.alt_screen: bool = alt_screen
        self._input = input_fn
        self.message: Optional[str] = None

    def run(self) -> None:
        """Main REPL loop; the list is cleared and redrawn each cycle."""
        exit_message: Optional[str] = None
        if self.alt_screen:
            _enter_alt_screen()
        try:
            while True:
                _clear_screen()
                self._show()
                if self.message:
                    print(f"\n{self.message}")
                    self.message = None
                line = self._input("\n: ").strip()
                if not line:
                    continue
                lower = line.lower()
                if lower == 'help':
                    _clear_screen()
                    self._help()
                    self._input("\nPress Enter to return to the list...")
                    continue
                if lower in ('exit', 'quit'):
                    exit_message = "Goodbye."
                    break
                self.handle_command(line)
        except (KeyboardInterrupt, EOFError):
            exit_message = "Interrupted. Goodbye."
        finally:
            if self.alt_screen:
                _leave_alt_screen()
            if exit_message:
                print(exit_message)

    def _show(self) -> None:
        try:
            todos = self.store.list()
        except StoreError as exc:
            logger.error("error listing todos: %s", exc)
            print(f"Error listing todos: {exc}")
            return
        view.display(todos)

    # -------------------- command dispatch --------------------
    def handle_command(self, line: str) -> None:
        """Run one command line; the outcome lands in self.message."""
        tokens = line.split()
        if not tokens:
            return
        cmd = tokens[0].lower()
        try:
            if cmd == 'add':
                self._cmd_add(tokens)
            elif cmd in ('done', 'd'):
                self._cmd_done(tokens)
            elif cmd in ('rm', 'clear'):
                self._cmd_rm(tokens)
            else:
                self.message = "Unknown command. Type 'help' for instructions."
        except TodoNotFoundError as exc:
            self.message = f"Todo id {exc.todo_id} not found."
        except StoreError as exc:
            logger.error("%s failed: %s", cmd, exc)
            self.message = f"Error: {exc}"

    # ---- individual command helpers ----
    def _cmd_add(self, tokens: list) -> None:
        if len(tokens) > 1:  # inline shorthand
            title = ' '.join(tokens[1:]).strip()
        else:
            title = self._input("Enter todo title: ").strip()
        if not title:
            self.message = "Title required."
            return
        todo = self.store.add(title)
        self.message = f"Added {todo.id}."

    def _cmd_done(self, tokens: list) -> None:
        tid = self._parse_id(tokens, "done <id>")
        if tid is None:
            return
        todo = self.store.toggle(tid)
        self.message = f"Todo {tid} marked {'done' if todo.done else 'not done'}."

    def _cmd_rm(self, tokens: list) -> None:
        tid = self._parse_id(tokens, "rm <id>")
        if tid is None:
            return
        self.store.delete(tid)
        self.message = f"Todo {tid} removed."

    def _parse_id(self, tokens: list, usage: str) -> Optional[int]:
        if len(tokens) != 2:
            self.message = f"Usage: {usage}"
            return None
        raw_id = tokens[1].rstrip('.')
        if not (raw_id.isascii() and raw_id.isdigit()):
            self.message = "Invalid id."
            return None
        return int(raw_id)

    def _help(self) -> None:
        print("Commands:")
        print("  add                 Add a todo (prompts for title)")
        print("  add <title...>      Shorthand add with inline title (e.g., add buy milk)")
        print("  done <id>           Toggle done / not done (alias: d)")
        print("  rm <id>             Remove a todo by id (alias: clear)")
        print("  help                Show this help (press Enter to return)")
        print("  exit                Exit")
