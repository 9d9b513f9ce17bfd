# src/pocket_pilot/storage/json_store.py

from __future__ import annotations

import contextlib
import json
import logging
import os
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class JsonDocumentStore:
    """
    File-per-document JSON persistence.

    - read(): a missing or corrupt file degrades to the given default (logged).
    - write(): atomic (tmp file + os.replace); errors propagate to the caller.
    """

    def __init__(self, base_dir: str | Path) -> None:
        self._base_dir = Path(base_dir)
        self._base_dir.mkdir(parents=True, exist_ok=True)

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def path_for(self, name: str) -> Path:
        return self._base_dir / f"{name}.json"

    def read(self, name: str, default: Any) -> Any:
        path = self.path_for(name)
        if not path.exists():
            return default
        try:
            return json.loads(path.read_text("utf-8"))
        except Exception:
            logger.warning("Failed to read %s; using default.", path, exc_info=True)
            return default

    def write(self, name: str, data: Any) -> None:
        path = self.path_for(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".tmp")
        try:
            tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), "utf-8")
            os.replace(tmp, path)
        except BaseException:
            with contextlib.suppress(OSError):
                tmp.unlink()
            raise
        with contextlib.suppress(Exception):
            os.chmod(path, 0o600)
        logger.debug("Saved document %s", path)
