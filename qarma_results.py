"""Dialog results and the result extractor.

A dialog host hands over an already typed result object when the dialog is
accepted; this module only formats it and decides the exit code. Date and
colour formatting use QtCore/QtGui value types (no widgets, no display) so
``--date-format`` keeps Qt date pattern semantics.
"""
from __future__ import annotations
import os, sys, signal
from datetime import date
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from qarma_core import ACCEPTED, EXIT_SUCCESS, EXIT_REJECTED, Mode, _invoke

DEFAULT_COLOR = '#ffffff'


@dataclass(frozen=True)
class CalendarResult:
    selected: date
    date_format: Optional[str] = None


@dataclass(frozen=True)
class EntryResult:
    text: str


@dataclass(frozen=True)
class PasswordResult:
    password: str
    username: Optional[str] = None   # None when no username field was requested


@dataclass(frozen=True)
class FileSelectionResult:
    paths: Tuple[str, ...]
    separator: str = '|'


@dataclass(frozen=True)
class ColorResult:
    color: str


@dataclass(frozen=True)
class ScaleResult:
    value: int


@dataclass(frozen=True)
class TextInfoResult:
    text: str
    editable: bool = False


@dataclass(frozen=True)
class ListResult:
    values: Tuple[str, ...]
    separator: str = '|'


@dataclass(frozen=True)
class FormsResult:
    values: Tuple[Union[str, bool, date], ...]   # str text, bool checkbox, date calendar
    separator: str = '|'
    date_format: Optional[str] = None


DialogResult = Union[CalendarResult, EntryResult, PasswordResult, FileSelectionResult, ColorResult,
                     ScaleResult, TextInfoResult, ListResult, FormsResult]

# Modes whose acceptance prints nothing
SILENT_MODES = frozenset({Mode.MESSAGE, Mode.PROGRESS, Mode.NOTIFICATION})


# ---------------- Formatting -----------------
def format_date(d: date, pattern: Optional[str] = None) -> str:
    """Qt date pattern (``yyyy-MM-dd``) or the system locale's short format."""
    from PySide6.QtCore import QDate, QLocale
    qd = QDate(d.year, d.month, d.day)
    if not pattern:
        return QLocale.system().toString(qd, QLocale.FormatType.ShortFormat)
    return qd.toString(pattern)


def normalize_color(text: Optional[str], callbacks=None) -> str:
    """``#rrggbb`` for any colour Qt understands; white when unset or invalid."""
    if not text:
        return DEFAULT_COLOR
    from PySide6.QtGui import QColor
    c = QColor(text)
    if not c.isValid():
        _invoke(callbacks, 'warn', f"invalid color '{text}', using {DEFAULT_COLOR}")
        return DEFAULT_COLOR
    return c.name()


def _form_value(v, date_format: Optional[str]) -> str:
    if isinstance(v, bool):
        return 'true' if v else 'false'
    if isinstance(v, date):
        return format_date(v, date_format)
    return str(v)


def format_result(result: Optional[DialogResult]) -> Optional[str]:
    """Text to print for an accepted dialog (without newline) or None."""
    if result is None:
        return None
    if isinstance(result, CalendarResult):
        return format_date(result.selected, result.date_format)
    if isinstance(result, EntryResult):
        return result.text
    if isinstance(result, PasswordResult):
        prefix = '' if result.username is None else result.username + '|'
        return prefix + result.password
    if isinstance(result, FileSelectionResult):
        return result.separator.join(result.paths)
    if isinstance(result, ColorResult):
        return result.color
    if isinstance(result, ScaleResult):
        return str(result.value)
    if isinstance(result, TextInfoResult):
        return result.text if result.editable else None
    if isinstance(result, ListResult):
        return result.separator.join(result.values)
    if isinstance(result, FormsResult):
        return result.separator.join(_form_value(v, result.date_format) for v in result.values)
    raise TypeError(f"unsupported dialog result {type(result).__name__}")


# ---------------- Extraction -----------------
def kill_parent(callbacks=None):
    if not hasattr(os, 'getppid') or not hasattr(signal, 'SIGTERM'):
        return
    ppid = os.getppid()
    try:
        os.kill(ppid, signal.SIGTERM)
    except OSError as e:
        _invoke(callbacks, 'warn', f"could not terminate parent process {ppid}: {e}")


class ResultExtractor:
    """Turns the terminal dialog state into stdout text and an exit code, once."""
    def __init__(self, mode: Optional[Mode], auto_kill: bool = False, stdout=None, callbacks=None,
                 kill=kill_parent):
        self.mode = mode
        self.auto_kill = auto_kill
        self.stdout = stdout
        self.callbacks = callbacks
        self._kill = kill
        self.done = False
        self.output: Optional[str] = None

    def finish(self, state: str, result: Optional[DialogResult] = None) -> int:
        if self.done:
            raise RuntimeError('dialog result already extracted')
        self.done = True
        if state != ACCEPTED:
            if self.auto_kill:
                _invoke(self.callbacks, 'debug', 'cancelled: terminating parent process')
                self._kill(self.callbacks)
            return EXIT_REJECTED
        if self.mode in SILENT_MODES:
            return EXIT_SUCCESS
        self.output = format_result(result)
        if self.output is not None:
            out = self.stdout if self.stdout is not None else sys.stdout
            out.write(self.output + '\n')
            out.flush()
        return EXIT_SUCCESS
