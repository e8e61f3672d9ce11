import json
import logging
from pathlib import Path
from types import ModuleType
from typing import Any, Dict, Optional

import factorio_supervisor.settings as default_settings

log = logging.getLogger(__name__)


class MergedSettings:
    """
    The supervisor's effective configuration.

    Values come from `settings.py` (which already folded in `.env` through
    python-dotenv), then from `overrides.json`, which may only touch the keys
    listed in `MODIFIABLE_SETTINGS`.
    """

    def __init__(self, defaults: ModuleType = default_settings, overrides_path: Optional[Path] = None) -> None:
        """
        :param defaults: Module (or namespace) whose uppercase attributes are the defaults.
        :param overrides_path: Overrides file; defaults to `OVERRIDES_JSON_PATH` from `defaults`.
        """
        for key in dir(defaults):
            if key.isupper():
                setattr(self, key, getattr(defaults, key))
        if overrides_path is not None:
            self.OVERRIDES_JSON_PATH = Path(overrides_path)
        self._apply_overrides()

    def _read_overrides(self) -> Dict[str, Any]:
        if not self.OVERRIDES_JSON_PATH.exists():
            return {}
        try:
            overrides = json.loads(self.OVERRIDES_JSON_PATH.read_text())
        except (json.JSONDecodeError, OSError) as e:
            log.error(f"Failed to load or parse overrides file '{self.OVERRIDES_JSON_PATH}': {e}")
            return {}
        if not isinstance(overrides, dict):
            log.error(f"Overrides file '{self.OVERRIDES_JSON_PATH}' must hold a JSON object. Ignoring it.")
            return {}
        log.info(f"Loading runtime configuration overrides from {self.OVERRIDES_JSON_PATH}")
        return overrides

    def _apply_overrides(self) -> None:
        for key, value in self._read_overrides().items():
            if not hasattr(self, key):
                log.warning(f"Override setting '{key}' not found in default settings. Ignoring.")
            elif key not in self.MODIFIABLE_SETTINGS:
                log.warning(f"Attempted to override non-modifiable setting '{key}'. Ignoring.")
            else:
                # JSON has no path type
                if isinstance(getattr(self, key), Path):
                    value = Path(value)
                setattr(self, key, value)
                log.debug(f"Overridden setting: {key} = {value}")

    def save_overrides(self, overrides_to_save: Dict[str, Any]) -> None:
        """
        Persists the modifiable subset of `overrides_to_save` to the overrides file.

        :param overrides_to_save: Setting names mapped to their new values.
        """
        allowed = {key: value for key, value in overrides_to_save.items() if key in self.MODIFIABLE_SETTINGS}
        if not allowed:
            log.warning("No modifiable settings provided to save.")
            return

        try:
            self.OVERRIDES_JSON_PATH.write_text(json.dumps(allowed, indent=4, default=str))
        except OSError as e:
            log.error(f"Failed to write to overrides file '{self.OVERRIDES_JSON_PATH}': {e}")
            return
        log.info(f"Configuration overrides saved to {self.OVERRIDES_JSON_PATH}")

    def server_options(self) -> Dict[str, Any]:
        """
        Builds the options dict for `FactorioServer` from the current settings.

        Ports of 0 and an empty password are left out so the server derives them.
        """
        options: Dict[str, Any] = {
            "executable_path": self.FACTORIO_EXECUTABLE,
            "rcon_password_length": self.RCON_PASSWORD_LENGTH,
            "graceful_timeout": self.GRACEFUL_SHUTDOWN_TIMEOUT,
            "chunk_size": self.STREAM_CHUNK_SIZE,
            "process_name": self.PROCESS_NAME,
        }
        optional = {"game_port": self.GAME_PORT, "rcon_port": self.RCON_PORT, "rcon_password": self.RCON_PASSWORD}
        options.update({name: value for name, value in optional.items() if value})
        return options


effective_settings = MergedSettings()
