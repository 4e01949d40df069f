from pathlib import Path

import pytest

from config import DEFAULT_BIND, Settings, parse_bind, read_env_file
from main import build_parser, main, resolve_settings


def test_defaults(tmp_path):
    settings = Settings.load(environ={}, env_file=tmp_path / "missing.env")
    assert settings.bind == DEFAULT_BIND
    assert (settings.host, settings.port) == ("0.0.0.0", 8000)
    assert settings.alt_screen is True


def test_env_file_and_environment_priority(tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("# comment\nTODO_DB=/tmp/from-file.db\nTODO_BIND=127.0.0.1:9000\nOTHER=1\n")
    assert read_env_file(env_file) == {"TODO_DB": "/tmp/from-file.db", "TODO_BIND": "127.0.0.1:9000"}
    settings = Settings.load(environ={"TODO_BIND": ":7000", "TODO_ALT_SCREEN": "off", "TODO_LOG_LEVEL": "debug"},
                             env_file=env_file)
    assert settings.db_path == Path("/tmp/from-file.db")
    assert (settings.host, settings.port) == ("0.0.0.0", 7000)
    assert settings.alt_screen is False
    assert settings.log_level == "DEBUG"


@pytest.mark.parametrize("bind", ["nope", "host:", "host:http"])
def test_parse_bind_rejects(bind):
    with pytest.raises(ValueError):
        parse_bind(bind)


def test_flags_override_settings(tmp_path):
    args = build_parser().parse_args(["--log-level", "warning", "serve", "--bind", "localhost:8080",
                                      "--db", str(tmp_path / "x.db")])
    settings = resolve_settings(args)
    assert settings.bind == "localhost:8080"
    assert settings.db_path == tmp_path / "x.db"
    assert settings.log_level == "WARNING"


def test_invalid_log_level_is_rejected():
    args = build_parser().parse_args(["--log-level", "chatty", "cli"])
    with pytest.raises(ValueError):
        resolve_settings(args)


def test_main_reports_invalid_log_level(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--log-level", "chatty", "cli"])
    assert excinfo.value.code == 2
    assert "invalid log level" in capsys.readouterr().err
