"""
SciCalc: Colour / theme definitions

Immutable CSS-variable palettes for the light and dark themes, plus
validation for the user's custom palette.
"""

import re
from typing import Optional

# ── Immutable palette dicts ────────────────────────────────────────────────

LIGHT_THEME = {
    "--bg-primary":             "#f3f4f6",
    "--bg-calculator":          "#e5e7eb",
    "--bg-display":             "#d1d5db",
    "--bg-modal":               "#ffffff",
    "--text-primary":           "#111827",
    "--text-display":           "#111827",
    "--text-display-secondary": "#6b7280",
    "--border-primary":         "#d1d5db",
    "--btn-default-bg":         "#d1d5db",
    "--btn-default-bg-hover":   "#9ca3af",
    "--btn-default-text":       "#111827",
    "--btn-operator-bg":        "#fb923c",
    "--btn-operator-bg-hover":  "#f97316",
    "--btn-operator-text":      "#ffffff",
    "--btn-function-bg":        "#d1d5db",
    "--btn-function-bg-hover":  "#9ca3af",
    "--btn-function-text":      "#111827",
    "--btn-solve-bg":           "#60a5fa",
    "--btn-solve-bg-hover":     "#3b82f6",
    "--btn-solve-text":         "#ffffff",
    "--btn-clear-bg":           "#f87171",
    "--btn-clear-bg-hover":     "#ef4444",
    "--btn-clear-text":         "#ffffff",
    "--btn-equals-bg":          "#4ade80",
    "--btn-equals-bg-hover":    "#22c55e",
    "--btn-equals-text":        "#ffffff",
}

DARK_THEME = {
    "--bg-primary":             "#111827",
    "--bg-calculator":          "#1f2937",
    "--bg-display":             "#374151",
    "--bg-modal":               "#1f2937",
    "--text-primary":           "#f9fafb",
    "--text-display":           "#f9fafb",
    "--text-display-secondary": "#9ca3af",
    "--border-primary":         "#4b5563",
    "--btn-default-bg":         "#4b5563",
    "--btn-default-bg-hover":   "#6b7280",
    "--btn-default-text":       "#ffffff",
    "--btn-operator-bg":        "#f97316",
    "--btn-operator-bg-hover":  "#ea580c",
    "--btn-operator-text":      "#ffffff",
    "--btn-function-bg":        "#4b5563",
    "--btn-function-bg-hover":  "#6b7280",
    "--btn-function-text":      "#ffffff",
    "--btn-solve-bg":           "#3b82f6",
    "--btn-solve-bg-hover":     "#2563eb",
    "--btn-solve-text":         "#ffffff",
    "--btn-clear-bg":           "#ef4444",
    "--btn-clear-bg-hover":     "#dc2626",
    "--btn-clear-text":         "#ffffff",
    "--btn-equals-bg":          "#22c55e",
    "--btn-equals-bg-hover":    "#16a34a",
    "--btn-equals-text":        "#ffffff",
}

THEME_KEYS = tuple(DARK_THEME)
_HEX_COLOUR = re.compile(r"^#[0-9a-fA-F]{6}$")


def validate_custom_theme(colors) -> dict:
    """Return a clean copy of *colors*; raise ValueError if it is unusable."""
    if not isinstance(colors, dict):
        raise ValueError("Custom theme must be a mapping of CSS variables to colours.")
    missing = [k for k in THEME_KEYS if k not in colors]
    if missing:
        raise ValueError(f"Custom theme is missing: {', '.join(missing)}")
    bad = [k for k in THEME_KEYS
           if not isinstance(colors[k], str) or not _HEX_COLOUR.match(colors[k])]
    if bad:
        raise ValueError(f"Not a #rrggbb colour: {', '.join(bad)}")
    return {k: colors[k] for k in THEME_KEYS}


def palette(theme: str, custom: Optional[dict] = None) -> dict:
    """Return the palette for *theme*; ``custom`` without a map is dark."""
    if theme == "custom" and custom:
        return dict(custom)
    return dict(LIGHT_THEME) if theme == "light" else dict(DARK_THEME)
