"""User configuration and on-disk layout.

Everything lives under the syncgraph home directory (``SYNCGRAPH_HOME``,
default ``~/.syncgraph``)::

    config.json   client and server settings
    cache/        cached document snapshots (client side)
    docs/         document change logs (server side)
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import TypedDict

from syncgraph.storage.fs import atomic_write

SYNCGRAPH_HOME_ENV = "SYNCGRAPH_HOME"
CONFIG_FILE = "config.json"


class ListenConfig(TypedDict, total=False):
    host: str
    port: int


class SyncgraphConfig(TypedDict, total=False):
    host: str
    listen: ListenConfig


def default_config() -> SyncgraphConfig:
    """Return the default configuration."""
    return {
        "host": "ws://127.0.0.1:9800",
        "listen": {
            "host": "127.0.0.1",
            "port": 9800,
        },
    }


def syncgraph_home() -> Path:
    """Return the home directory, honouring ``SYNCGRAPH_HOME``."""
    env_home = os.environ.get(SYNCGRAPH_HOME_ENV)
    if env_home:
        return Path(env_home)
    return Path.home() / ".syncgraph"


def cache_dir(home: Path | None = None) -> Path:
    return (home or syncgraph_home()) / "cache"


def docs_dir(home: Path | None = None) -> Path:
    return (home or syncgraph_home()) / "docs"


def load_config(home: Path | None = None) -> SyncgraphConfig:
    """Load ``config.json`` over the defaults.  Missing file means defaults."""
    config = default_config()
    config_path = (home or syncgraph_home()) / CONFIG_FILE
    if config_path.exists():
        stored = json.loads(config_path.read_text())
        listen = {**config["listen"], **stored.get("listen", {})}
        config.update(stored)
        config["listen"] = listen
    return config


def save_config(config: SyncgraphConfig, home: Path | None = None) -> None:
    """Write ``config.json`` atomically, creating the home directory."""
    home = home or syncgraph_home()
    home.mkdir(parents=True, exist_ok=True)
    atomic_write(home / CONFIG_FILE, json.dumps(config, sort_keys=True, indent=2) + "\n")
