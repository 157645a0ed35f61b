"""Dialog host interface and the headless console host.

A host turns a descriptor into something the user can answer and reports a
terminal state back to the session (``session.finish(state)`` or
``session.cancel()`` for progress cancel semantics). It also receives the
live mutations driven by the stdin protocol.

ConsoleHost answers every dialog non-interactively with the descriptor's
defaults. Stdin-driven dialogs stay open until the stream ends:
  progress      end-of-stream presses Cancel (accepts once 100% was reached;
                a pulsating bar counts as finished)
  text-info     accepted once the stream ended and all text is flushed;
                rejected when an agreement checkbox was requested
  notification  accepted when the stream ends
"""
from __future__ import annotations
import os, sys
from datetime import date
from typing import Optional, Any, List

from qarma_core import Mode, ACCEPTED, REJECTED, _invoke
from qarma_descriptors import FIELD_CALENDAR, FIELD_CHECKBOX, FIELD_COMBO
from qarma_live import ListSelection
from qarma_results import (
    CalendarResult, EntryResult, PasswordResult, FileSelectionResult, ColorResult, ScaleResult,
    TextInfoResult, ListResult, FormsResult, DialogResult, normalize_color,
)

DEFAULT_VIEWPORT_ROWS = 20


class DialogHost:
    """Interface for dialog hosts (all optional except show/result)."""
    def show(self, session): ...  # pragma: no cover - interface stub
    def close(self): ...
    def set_progress(self, value: int, pulsating: bool): ...
    def set_cancel_label(self, label: str): ...
    def set_text(self, text: str): ...
    def scroll_offset(self) -> int: return 0
    def max_scroll(self) -> int: return 0
    def set_scroll(self, offset: int): ...
    def animation_finished(self): ...
    def show_notification(self, message: str, no_close: bool): ...
    def set_visible(self, visible: bool): ...
    def stream_ended(self): ...
    def result(self) -> Optional[DialogResult]: return None


# ---------------- Progress mirroring -----------------
class ProgressEcho:
    """Mirrors progress on stderr: 'plain' lines or a 'rich' bar."""
    def __init__(self, mode: Optional[str] = None, stream=None, callbacks=None):
        self.mode = (mode or '').strip().lower() or None
        self.stream = stream if stream is not None else sys.stderr
        self.callbacks = callbacks
        self._progress = None
        self._task = None
        self._last = None

    def start(self, label: str = ''):
        if self.mode == 'rich':
            from rich.console import Console
            from rich.progress import Progress, BarColumn, TextColumn, TimeElapsedColumn
            self._progress = Progress(
                TextColumn("[bold cyan]{task.description}[/]"),
                BarColumn(),
                TextColumn("{task.percentage:>5.1f}%"),
                TimeElapsedColumn(),
                console=Console(file=self.stream),
                transient=False,
            )
            self._progress.start()
            self._task = self._progress.add_task(label or 'progress', total=100)
        elif self.mode not in (None, 'plain'):
            _invoke(self.callbacks, 'warn', f"unknown progress mode '{self.mode}'; using plain output")
            self.mode = 'plain'

    def update(self, value: int, pulsating: bool = False):
        if self.mode == 'rich' and self._progress is not None:
            self._progress.update(self._task, completed=value, total=None if pulsating else 100)
        elif self.mode == 'plain' and (value, pulsating) != self._last:
            self._last = (value, pulsating)
            print('[progress] pulsating' if pulsating else f'[progress] {value}%', file=self.stream, flush=True)

    def stop(self):
        if self._progress is not None:
            self._progress.stop()
            self._progress = None


# ---------------- Console host -----------------
class ConsoleHost(DialogHost):
    def __init__(self, progress_mode: Optional[str] = None, stream=None, callbacks=None,
                 viewport_rows: int = DEFAULT_VIEWPORT_ROWS, today: Optional[date] = None):
        self.callbacks = callbacks
        self.stream = stream if stream is not None else sys.stderr
        self.echo = ProgressEcho(progress_mode, self.stream, callbacks)
        self.viewport_rows = max(1, viewport_rows)
        self.today = today
        self.session = None
        self.visible = True
        self.text = ''
        self.offset = 0
        self.cancel_label = 'Cancel'
        self.notifications: List[str] = []
        self.selection: Optional[ListSelection] = None
        self._ended = False
        self._closed = False

    @classmethod
    def from_env(cls, env=None, callbacks=None) -> 'ConsoleHost':
        env = os.environ if env is None else env
        return cls(progress_mode=env.get('QARMA_PROGRESS'), callbacks=callbacks)

    # -- lifecycle --
    def show(self, session):
        self.session = session
        d = session.descriptor
        mode = d.mode
        if mode is Mode.PROGRESS:
            self.cancel_label = session.progress.cancel_label
            self.echo.start(d.text)
            self.echo.update(session.progress.value, session.progress.pulsating)
        elif mode is Mode.TEXT_INFO:
            if not d.listens_to_stdin:
                self._finish_text()
        elif mode is Mode.NOTIFICATION:
            if not d.listens_to_stdin:
                session.finish(ACCEPTED)
        elif mode is Mode.MESSAGE:
            session.finish(REJECTED if d.default_button == 'cancel' else ACCEPTED)
        elif mode is Mode.FILE_SELECTION:
            session.finish(ACCEPTED if d.filename else REJECTED)
        else:
            if mode is Mode.LIST:
                self.selection = ListSelection(d.rows(), d.multiple, d.checkable, d.exclusive)
            session.finish(ACCEPTED)

    def close(self):
        if self._closed:
            return
        self._closed = True
        self.echo.stop()

    def stream_ended(self):
        self._ended = True
        s = self.session
        mode = s.descriptor.mode
        if mode is Mode.PROGRESS:
            if s.close_pending:
                return
            if s.progress.pulsating:
                s.finish(ACCEPTED)
            else:
                s.cancel()
        elif mode is Mode.TEXT_INFO:
            self._finish_text()
        elif mode is Mode.NOTIFICATION:
            s.finish(ACCEPTED)

    def _finish_text(self):
        s = self.session
        if s.text.animating or s.text.pending:
            return
        if s.descriptor.checkbox:
            _invoke(self.callbacks, 'debug', 'agreement checkbox left unchecked')
            s.finish(REJECTED)
        else:
            s.finish(ACCEPTED)

    # -- live mutations --
    def set_progress(self, value: int, pulsating: bool):
        self.echo.update(value, pulsating)

    def set_cancel_label(self, label: str):
        self.cancel_label = label

    def set_text(self, text: str):
        self.text = text

    def scroll_offset(self) -> int:
        return self.offset

    def max_scroll(self) -> int:
        lines = self.text.count('\n') + 1 if self.text else 0
        return max(0, lines - self.viewport_rows)

    def set_scroll(self, offset: int):
        self.offset = offset

    def animation_finished(self):
        if self._ended:
            self._finish_text()

    def show_notification(self, message: str, no_close: bool):
        self.notifications.append(message)
        self.visible = True
        _invoke(self.callbacks, 'log', f"[notification] {message}")

    def set_visible(self, visible: bool):
        self.visible = visible

    # -- answer --
    def _date(self, y: int, m: int, d: int) -> date:
        try:
            return date(y, m, d)
        except ValueError:
            _invoke(self.callbacks, 'debug', f"invalid date {y}-{m}-{d}; using today")
            return self.today or date.today()

    def result(self) -> Optional[DialogResult]:
        d = self.session.descriptor
        mode = d.mode
        if mode is Mode.CALENDAR:
            return CalendarResult(self._date(d.year, d.month, d.day), d.date_format)
        if mode is Mode.ENTRY:
            return EntryResult(d.entry_text)
        if mode is Mode.PASSWORD:
            return PasswordResult('', '' if d.username else None)
        if mode is Mode.FILE_SELECTION:
            return FileSelectionResult((os.path.abspath(d.filename),), d.separator)
        if mode is Mode.COLOR_SELECTION:
            return ColorResult(normalize_color(d.color, self.callbacks))
        if mode is Mode.SCALE:
            return ScaleResult(d.value)
        if mode is Mode.TEXT_INFO:
            return TextInfoResult(self.session.text.text, d.editable)
        if mode is Mode.LIST:
            sel = self.selection or ListSelection(d.rows(), d.multiple, d.checkable, d.exclusive)
            return ListResult(tuple(sel.selected_values()), d.separator)
        if mode is Mode.FORMS:
            return FormsResult(tuple(self._form_default(f) for f in d.fields), d.separator, d.date_format)
        return None

    def _form_default(self, f) -> Any:
        if f.kind == FIELD_CALENDAR:
            return self.today or date.today()
        if f.kind == FIELD_CHECKBOX:
            return False
        if f.kind == FIELD_COMBO:
            return f.values[0] if f.values else ''
        return ''
