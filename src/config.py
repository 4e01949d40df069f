"""Runtime settings.

Resolution order for every value: command-line flag > real environment
variable > project .env file > default. Only TODO_* keys are read from
.env; anything else there is ignored.
"""
from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

PROJECT_DIR = Path(__file__).resolve().parent.parent
ENV_FILE = PROJECT_DIR / '.env'

DEFAULT_DB = PROJECT_DIR / 'data' / 'todo.db'
DEFAULT_BIND = '0.0.0.0:8000'
DEFAULT_LOG_LEVEL = 'INFO'


def truthy_env(value: Optional[str], default: bool = True) -> bool:
    if value is None:
        return default
    return value.strip().lower() not in {"0", "false", "no", "off", ""}


def read_env_file(path: Path = ENV_FILE) -> Dict[str, str]:
    """Parse KEY=VALUE lines from a .env file; missing file -> {}."""
    values: Dict[str, str] = {}
    if not path.exists():
        return values
    for line in path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith('#') or '=' not in line:
            continue
        k, v = line.split('=', 1)
        k = k.strip()
        if k.startswith('TODO_'):
            values[k] = v.strip().strip('"\'')
    return values


def parse_bind(bind: str) -> Tuple[str, int]:
    """Split "host:port" (or ":port") into a host and an int port."""
    host, sep, port = bind.rpartition(':')
    if not sep or not port.isdigit():
        raise ValueError(f'invalid bind address: {bind!r} (expected host:port)')
    return host or '0.0.0.0', int(port)


@dataclass
class Settings:
    db_path: Path = DEFAULT_DB
    bind: str = DEFAULT_BIND
    log_level: str = DEFAULT_LOG_LEVEL
    alt_screen: bool = True

    @property
    def host(self) -> str:
        return parse_bind(self.bind)[0]

    @property
    def port(self) -> int:
        return parse_bind(self.bind)[1]

    @classmethod
    def load(cls, environ: Optional[Mapping[str, str]] = None, env_file: Path = ENV_FILE) -> "Settings":
        env = dict(read_env_file(env_file))
        env.update({k: v for k, v in (os.environ if environ is None else environ).items() if k.startswith('TODO_')})
        settings = cls()
        if env.get('TODO_DB'):
            settings.db_path = Path(env['TODO_DB']).expanduser()
        if env.get('TODO_BIND'):
            settings.bind = env['TODO_BIND']
        if env.get('TODO_LOG_LEVEL'):
            settings.log_level = env['TODO_LOG_LEVEL'].upper()
        settings.alt_screen = truthy_env(env.get('TODO_ALT_SCREEN'), True)
        parse_bind(settings.bind)
        return settings
