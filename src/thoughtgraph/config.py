"""ThoughtsConfig: where the graph lives and how the CLI displays it.

Lookup order for the data file (later wins):

    1. click.get_app_dir("thoughtgraph")/thoughts.json
    2. [thoughts] file in the nearest thoughts.toml (searched upward from cwd),
       relative to the directory holding thoughts.toml
    3. THOUGHTGRAPH_FILE environment variable
    4. --file on the command line (applied by the CLI)

thoughts.toml example:

    [thoughts]
    file = "thoughts.json"

    [display]
    max_length = 70      # preview width in list/search output

    [visualize]
    format = "dot"       # dot | json
    depth = 1
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import click

_CONFIG_FILENAME = "thoughts.toml"
_DEFAULT_DATA_FILE = "thoughts.json"
_ENV_FILE = "THOUGHTGRAPH_FILE"
_VISUALIZE_FORMATS = ("dot", "json")


@dataclass
class DisplayConfig:
    max_length: int = 70


@dataclass
class VisualizeConfig:
    format: str = "dot"
    depth: int = 1


@dataclass
class ThoughtsConfig:
    """Resolved configuration."""

    root: Path | None               # directory holding thoughts.toml, if any
    data_file: Path = field(default_factory=Path)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    visualize: VisualizeConfig = field(default_factory=VisualizeConfig)

    def with_data_file(self, path: Path | str) -> ThoughtsConfig:
        return ThoughtsConfig(
            root=self.root,
            data_file=Path(path).expanduser(),
            display=self.display,
            visualize=self.visualize,
        )


def default_data_file() -> Path:
    return Path(click.get_app_dir("thoughtgraph")) / _DEFAULT_DATA_FILE


def load_config(start: Path | str | None = None, env: dict[str, str] | None = None) -> ThoughtsConfig:
    """Load thoughts.toml from start (or cwd) upward and apply the environment."""
    env = dict(os.environ) if env is None else env
    root = _find_root(Path(start) if start else Path.cwd())

    raw: dict[str, Any] = {}
    if root is not None:
        with (root / _CONFIG_FILENAME).open("rb") as f:
            raw = tomllib.load(f)

    th_section = raw.get("thoughts", {})
    disp_section = raw.get("display", {})
    vis_section = raw.get("visualize", {})

    data_file = default_data_file()
    if root is not None and th_section.get("file"):
        data_file = root / Path(th_section["file"]).expanduser()
    if env.get(_ENV_FILE):
        data_file = Path(env[_ENV_FILE]).expanduser()

    fmt = str(vis_section.get("format", "dot")).lower()
    if fmt not in _VISUALIZE_FORMATS:
        msg = f"{_CONFIG_FILENAME}: [visualize] format must be one of {', '.join(_VISUALIZE_FORMATS)}, got {fmt!r}"
        raise ValueError(msg)

    return ThoughtsConfig(
        root=root,
        data_file=data_file,
        display=DisplayConfig(max_length=int(disp_section.get("max_length", 70))),
        visualize=VisualizeConfig(format=fmt, depth=int(vis_section.get("depth", 1))),
    )


def _find_root(start: Path) -> Path | None:
    """Walk upward from start looking for thoughts.toml."""
    for directory in (start, *start.parents):
        if (directory / _CONFIG_FILENAME).exists():
            return directory
    return None
