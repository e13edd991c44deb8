"""JSON document helpers shared by the credential, session and record stores."""

from __future__ import annotations

import json
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict

from ..utils.exceptions import StorageError


def atomic_write(path: Path, payload: Dict[str, Any]) -> None:
    """Atomically write JSON to the target path (temp file + move)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tf = tempfile.NamedTemporaryFile(
        mode="w", dir=str(path.parent), delete=False, encoding="utf-8"
    )
    temp_path = Path(tf.name)
    try:
        with tf:
            json.dump(payload, tf, indent=2, ensure_ascii=False, default=str)
        shutil.move(str(temp_path), str(path))
    except (OSError, TypeError, ValueError) as e:
        raise StorageError(f"Failed to save {path}: {e}")
    finally:
        # Gone after a successful move; left over only on failure.
        if temp_path.exists():
            temp_path.unlink()


def read_json(path: Path) -> Dict[str, Any]:
    """Load a JSON document; a missing file reads as empty."""
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        raise StorageError(f"Failed to load {path}: {e}")
    if not isinstance(data, dict):
        raise StorageError(f"Unexpected document shape in {path}")
    return data


def safe_name(value: str) -> str:
    """Make an id usable as a file name."""
    return "".join(c if c.isalnum() or c in "-_" else "_" for c in value)
