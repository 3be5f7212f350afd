"""Persistent settings of the modem application."""

from __future__ import annotations

import errno
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Union

from .util import AtCommandError

log = logging.getLogger(__name__)

__all__ = ["SettingsStore", "SUBTREE", "FOTA_KEY"]

SUBTREE = "slm"
FOTA_KEY = "modem_full_fota"


class SettingsStore:
    """Settings of the ``slm`` subtree kept in a JSON file.

    Other keys found in the file are left untouched; obsolete keys of the
    subtree are ignored on load.
    """

    def __init__(self, path: Union[str, os.PathLike]) -> None:
        self.path = Path(path)
        self.modem_full_fota = False

    def _read(self) -> Dict[str, Any]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            log.error("Load setting failed: %s", exc)
            raise AtCommandError(errno.EINVAL, f"corrupt settings file: {exc}") from exc
        if not isinstance(data, dict):
            raise AtCommandError(errno.EINVAL, "settings file must hold an object")
        return data

    def load(self) -> None:
        """Apply every stored setting of the subtree."""
        prefix = SUBTREE + "/"
        for key, value in self._read().items():
            if key.startswith(prefix):
                self.apply(key[len(prefix):], value)

    def apply(self, name: str, value: Any) -> None:
        """Apply one stored setting; unknown names are ignored."""
        if name == FOTA_KEY:
            if not isinstance(value, bool):
                raise AtCommandError(errno.EINVAL, f"bad value for {name}: {value!r}")
            self.modem_full_fota = value

    def save_fota(self) -> None:
        """Store the full-modem FOTA flag."""
        data = self._read()
        data[f"{SUBTREE}/{FOTA_KEY}"] = self.modem_full_fota
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".settings-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, indent=2, sort_keys=True)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise