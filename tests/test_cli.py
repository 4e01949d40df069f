import pytest

from cli import CLI
from models import Todo


@pytest.fixture()
def cli(store):
    return CLI(store, alt_screen=False)


def test_add_inline(cli, store):
    cli.handle_command("add buy   milk")
    assert store.list() == [Todo("buy milk", id=0)]
    assert cli.message == "Added 0."


def test_add_prompts_for_title(store):
    cli = CLI(store, alt_screen=False, input_fn=lambda prompt: "walk dog")
    cli.handle_command("add")
    assert [t.title for t in store.list()] == ["walk dog"]


def test_add_empty_prompt(store):
    cli = CLI(store, alt_screen=False, input_fn=lambda prompt: "  ")
    cli.handle_command("add")
    assert cli.message == "Title required."
    assert store.list() == []


def test_done_and_rm(cli, store):
    store.add("a")
    cli.handle_command("done 0")
    assert store.get(0).done is True
    assert cli.message == "Todo 0 marked done."
    cli.handle_command("rm 0.")
    assert store.list() == []
    assert cli.message == "Todo 0 removed."


def test_unknown_id(cli):
    cli.handle_command("done 4")
    assert cli.message == "Todo id 4 not found."
    cli.handle_command("clear 4")
    assert cli.message == "Todo id 4 not found."


@pytest.mark.parametrize("line, message", [
    ("done", "Usage: done <id>"),
    ("rm x", "Invalid id."),
    ("frobnicate", "Unknown command. Type 'help' for instructions."),
])
def test_bad_input(cli, line, message):
    cli.handle_command(line)
    assert cli.message == message


def test_run_loop_until_exit(store, capsys):
    lines = iter(["add first", "", "done 0", "exit"])
    CLI(store, alt_screen=False, input_fn=lambda prompt: next(lines)).run()
    assert store.list() == [Todo("first", id=0, done=True)]
    assert "Goodbye." in capsys.readouterr().out


def test_run_loop_handles_eof(store, capsys):
    def eof(prompt):
        raise EOFError

    CLI(store, alt_screen=False, input_fn=eof).run()
    assert "Interrupted. Goodbye." in capsys.readouterr().out


@pytest.mark.parametrize("line", ["done ²", "rm ١٢"])
def test_non_ascii_digits_are_invalid_ids(cli, store, line):
    store.add("a")
    cli.handle_command(line)
    assert cli.message == "Invalid id."
    assert store.get(0).done is False
