"""JSON read/write used by every model's persist_to_file / restore_from_file."""

import json
from pathlib import Path
from typing import Any

from loguru import logger


def _resolve(path: str | Path, verb: str) -> Path:
    if path is None or str(path) == "":
        raise ValueError(f"tried to {verb} a model with no path; give a valid file path")
    return Path(path)


def write_json(path: str | Path, state: Any) -> Path:
    """Serialise *state* (lists / dicts of numbers) to *path*."""
    target = _resolve(path, "persist")
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(state))
    logger.debug("persisted model state to {}", target)
    return target


def read_json(path: str | Path) -> Any:
    source = _resolve(path, "restore")
    state = json.loads(source.read_text())
    logger.debug("restored model state from {}", source)
    return state
