"""Durable record of the last lag and the last alert level sent."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

import structlog
import yaml
from pydantic import ValidationError

from heightwatch.alerting.exceptions import PersistenceError
from heightwatch.core.types import AlertLevel, PersistedState

logger = structlog.get_logger(__name__)

STATE_FILE_MODE = 0o644


class AlertStateStore:
    """YAML-backed single-record store.

    Only the scheduling loop touches it, one call at a time, so there is no
    locking. A missing or empty file is the bootstrap state, not an error.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> PersistedState:
        """Return the persisted state, or the zero state if none exists.

        Raises:
            PersistenceError: the file exists but cannot be read or parsed.
        """
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return PersistedState()
        except OSError as exc:
            raise PersistenceError(f"cannot read {self._path}: {exc}") from exc

        try:
            raw = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise PersistenceError(f"invalid YAML in {self._path}: {exc}") from exc

        if raw is None:
            return PersistedState()
        if not isinstance(raw, dict):
            raise PersistenceError(f"{self._path} does not contain a mapping")

        try:
            return PersistedState.model_validate(raw)
        except ValidationError as exc:
            raise PersistenceError(f"invalid state in {self._path}: {exc}") from exc

    def save(self, lag: int, level: AlertLevel) -> None:
        """Overwrite the stored state with ``(lag, level)``.

        Writes a sibling temp file with mode 0644 and renames it over the
        target.

        Raises:
            PersistenceError: the directory or file is not writable.
        """
        state = PersistedState(previous_lag=lag, last_alert_level=level)
        data = {
            "previous_height_diff": state.previous_lag,
            "last_alert_level": int(state.last_alert_level),
        }
        text = yaml.safe_dump(data, sort_keys=False)

        directory = self._path.parent
        tmp_name: str | None = None
        try:
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self._path.name}.", suffix=".tmp", dir=directory
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            os.chmod(tmp_name, STATE_FILE_MODE)
            os.replace(tmp_name, self._path)
            tmp_name = None
        except OSError as exc:
            raise PersistenceError(f"cannot write {self._path}: {exc}") from exc
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    logger.warning("state_tmp_cleanup_failed", path=tmp_name)

        logger.debug("state_saved", path=str(self._path), lag=lag, level=int(level))
