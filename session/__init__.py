"""SciCalc keypad session, persisted settings and theme palettes."""

from session.keypad import Calculator, HistoryEntry, KeypadState, KeyResult

__all__ = ["Calculator", "HistoryEntry", "KeypadState", "KeyResult"]
