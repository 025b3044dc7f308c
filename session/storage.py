"""
SciCalc: Local JSON storage for persisted settings.

Data is persisted in ``<project>/data/scicalc.json`` unless the
``SCICALC_DATA_DIR`` environment variable points elsewhere.
"""

import json
import logging
import os
from typing import Optional

from engine.formatter import FormatSettings
from session import themes

logger = logging.getLogger(__name__)

_DATA_DIR = os.environ.get("SCICALC_DATA_DIR") or os.path.join(
    os.path.dirname(os.path.abspath(__file__)), "..", "data")
_DATA_FILE = os.path.join(_DATA_DIR, "scicalc.json")

# ── Default settings ───────────────────────────────────────────────────
DEFAULT_SETTINGS = {
    "theme": "dark",               # "light", "dark", "custom"
    "custom_theme": None,          # CSS variable -> colour map
    "rounding_precision": "None",  # "None" or "0".."8"
}


def _ensure_dir() -> None:
    os.makedirs(_DATA_DIR, exist_ok=True)


def _load_db() -> dict:
    _ensure_dir()
    if os.path.exists(_DATA_FILE):
        try:
            with open(_DATA_FILE, "r", encoding="utf-8") as f:
                db = json.load(f)
            if isinstance(db, dict):
                return db
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Ignoring unreadable settings file %s: %s", _DATA_FILE, exc)
    return {"settings": dict(DEFAULT_SETTINGS)}


def _save_db(db: dict) -> None:
    _ensure_dir()
    with open(_DATA_FILE, "w", encoding="utf-8") as f:
        json.dump(db, f, indent=2, ensure_ascii=False)


def _sanitize(stored) -> dict:
    """Merge *stored* over the defaults, dropping malformed values."""
    merged = dict(DEFAULT_SETTINGS)
    if not isinstance(stored, dict):
        return merged

    custom = stored.get("custom_theme")
    if custom is not None:
        try:
            merged["custom_theme"] = themes.validate_custom_theme(custom)
        except ValueError:
            merged["custom_theme"] = None

    theme = stored.get("theme")
    if theme in ("light", "dark"):
        merged["theme"] = theme
    elif theme == "custom" and merged["custom_theme"]:
        merged["theme"] = "custom"

    merged["rounding_precision"] = FormatSettings.from_setting(
        stored.get("rounding_precision")).as_setting()
    return merged


# ── Settings ─────────────────────────────────────────────────────────────

def get_settings() -> dict:
    """Return the persisted settings, falling back to defaults."""
    return _sanitize(_load_db().get("settings"))


def save_settings(settings: dict) -> dict:
    """Persist *settings* (merged over the current ones); return the result."""
    db = _load_db()
    current = _sanitize(db.get("settings"))
    current.update(settings)
    db["settings"] = _sanitize(current)
    _save_db(db)
    return db["settings"]


def save_custom_theme(colors: dict) -> dict:
    """Store a custom palette and switch to it. Raises ValueError if invalid."""
    clean = themes.validate_custom_theme(colors)
    return save_settings({"custom_theme": clean, "theme": "custom"})


def get_format_settings(settings: Optional[dict] = None) -> FormatSettings:
    settings = settings if settings is not None else get_settings()
    return FormatSettings.from_setting(settings.get("rounding_precision"))


def active_palette(settings: Optional[dict] = None) -> dict:
    settings = settings if settings is not None else get_settings()
    return themes.palette(settings["theme"], settings.get("custom_theme"))


def clear_all_data() -> None:
    """Reset everything to defaults."""
    _save_db({"settings": dict(DEFAULT_SETTINGS)})
