"""Application configuration loaded from ``config.json``.

The file is looked up next to this module first and then in the current
working directory.  Parsed contents are cached per path so every
``ConfigLoader()`` created during a frame is cheap.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)

CONFIG_FILENAME = 'config.json'
DEFAULT_LOG_LEVEL = 'INFO'
LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'

_CONFIG_CACHE: Dict[Path, dict] = {}


def find_config_path(path: Union[str, Path, None] = None) -> Optional[Path]:
    """Return the config file to use, or ``None`` if none exists."""
    if path is not None:
        candidate = Path(path).expanduser()
        return candidate if candidate.exists() else None
    bundled = Path(__file__).resolve().parent / CONFIG_FILENAME
    if bundled.exists():
        return bundled
    alt = Path.cwd() / CONFIG_FILENAME
    if alt.exists():
        return alt
    return None


def _load_config_dict(path: Optional[Path]) -> dict:
    if path is None:
        return {}
    cached = _CONFIG_CACHE.get(path)
    if cached is not None:
        return cached
    try:
        with path.open('r', encoding='utf-8') as fh:
            data = json.load(fh)
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Could not read %s (%s); using built-in defaults", path, exc)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring %s: top level must be an object", path)
        return {}
    _CONFIG_CACHE[path] = data
    return data


def clear_cache() -> None:
    """Forget parsed config files so the next loader re-reads them."""
    _CONFIG_CACHE.clear()


class ConfigLoader:
    """Dictionary-style access to the application config.

    ``loader['window']`` raises ``KeyError`` for missing keys;
    ``loader.get('window', {})`` falls back to a default.
    """

    def __init__(self, path: Union[str, Path, None] = None):
        self.path: Optional[Path] = find_config_path(path)
        if path is not None and self.path is None:
            logger.warning("Config file %s not found; using built-in defaults", path)
        self._loader: dict = _load_config_dict(self.path)

    def __getitem__(self, key: str) -> Any:
        return self._loader[key]

    def __contains__(self, key: str) -> bool:
        return key in self._loader

    def get(self, key: str, default: Any = None) -> Any:
        return self._loader.get(key, default)

    def section(self, key: str) -> dict:
        """Return a sub-dictionary, or an empty one if missing or malformed."""
        value = self._loader.get(key)
        return value if isinstance(value, dict) else {}


def configure_logging(level: Union[str, int, None] = None, loader: Optional[ConfigLoader] = None) -> int:
    """Install a basic stderr handler and return the numeric level in use.

    The explicit ``level`` wins over the ``logging.level`` config entry.
    """
    if level is None and loader is not None:
        level = loader.section('logging').get('level')
    if level is None:
        level = DEFAULT_LOG_LEVEL
    if isinstance(level, str):
        numeric = logging.getLevelName(level.upper())
        if not isinstance(numeric, int):
            numeric = logging.INFO
    else:
        numeric = int(level)
    logging.basicConfig(level=numeric, format=LOG_FORMAT)
    logging.getLogger().setLevel(numeric)
    return numeric
