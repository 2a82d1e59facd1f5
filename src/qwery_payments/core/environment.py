"""
Resolution of the ``QWERY_*`` variables that configure the client.

Three layers are merged, lowest precedence first:

1. ``base``: the process environment unless a mapping is passed explicitly.
2. ``env_file``: a dotenv file. It only fills keys the base left unset, so
   an exported variable always beats the file.
3. ``overrides``: ``--set KEY=VALUE`` pairs and keyword parameters. They
   always win.

:class:`ClientEnvironment` remembers which layer supplied every key so the
CLI can log where a setting came from. Secrets (``QWERY_API_KEY`` and the
payer key) are masked in that output.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, MutableMapping, Optional

__all__ = [
    "ENV_PREFIX",
    "ClientEnvironment",
    "build_environment",
    "load_env_file",
]

ENV_PREFIX = "QWERY_"

SOURCE_ENVIRONMENT = "environment"
SOURCE_OVERRIDE = "override"

_SECRET_KEYS = frozenset({"QWERY_API_KEY", "QWERY_PAYER_PRIVATE_KEY"})


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def _parse_env_file(path: Path) -> Dict[str, str]:
    """Read ``KEY=VALUE`` lines; ``export`` prefixes and matching quotes are stripped."""
    values: Dict[str, str] = {}
    try:
        data = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return values

    for raw_line in data.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        if line.startswith("export "):
            line = line[len("export ") :]
        key, value = line.split("=", 1)
        values[key.strip()] = _unquote(value.strip())
    return values


def _mask(value: str) -> str:
    if len(value) <= 8:
        return "***"
    return f"{value[:4]}...{value[-2:]}"


def load_env_file(
    path: str = ".env",
    *,
    environ: Optional[MutableMapping[str, str]] = None,
) -> Dict[str, str]:
    """
    Load variables from ``path`` into ``environ`` (default :data:`os.environ`).

    Keys that are already set are left alone. Returns a copy of the merged
    mapping.
    """
    target: MutableMapping[str, str] = environ if environ is not None else os.environ
    for key, value in _parse_env_file(Path(path)).items():
        target.setdefault(key, value)
    return dict(target)


@dataclass(frozen=True)
class ClientEnvironment:
    """
    Merged variables plus the layer each one came from.

    ``sources`` maps a key to ``"environment"``, ``"override"`` or the path
    of the env file that supplied it.
    """

    variables: Mapping[str, str]
    sources: Mapping[str, str] = field(default_factory=dict)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.variables.get(key, default)

    def source_of(self, key: str) -> Optional[str]:
        return self.sources.get(key)

    def client_settings(self) -> Dict[str, str]:
        """``QWERY_*`` variables only, with secrets masked, sorted by key."""
        settings: Dict[str, str] = {}
        for key in sorted(self.variables):
            if not key.startswith(ENV_PREFIX):
                continue
            value = self.variables[key]
            settings[key] = _mask(value) if key in _SECRET_KEYS and value else value
        return settings


def build_environment(
    *,
    env_file: Optional[str] = ".env",
    base: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, str]] = None,
) -> ClientEnvironment:
    """
    Assemble a :class:`ClientEnvironment` from the three layers.

    ``base`` defaults to :data:`os.environ`. Pass ``env_file=None`` to skip
    file loading entirely; a missing file is treated as empty.
    """
    merged: Dict[str, str] = dict(os.environ if base is None else base)
    sources: Dict[str, str] = {key: SOURCE_ENVIRONMENT for key in merged}

    if env_file is not None:
        for key, value in _parse_env_file(Path(env_file)).items():
            if key not in merged:
                merged[key] = value
                sources[key] = env_file

    if overrides:
        merged.update(overrides)
        sources.update({key: SOURCE_OVERRIDE for key in overrides})

    return ClientEnvironment(variables=merged, sources=sources)
