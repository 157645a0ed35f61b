"""Live dialog state and the stdin control protocol.

Qt-free: the runtime (qarma_app) owns the socket notifier and the
timers and feeds raw chunks in here; everything that decides *what* changes
lives in this module so it can be unit tested without an event loop.

Protocol per mode:
  progress      one integer per line (clamped to 100), ``pulsate:true|false``
  text-info     raw chunks appended verbatim (no line splitting)
  notification  ``key: value`` lines (icon, message, tooltip, visible, hints)
"""
from __future__ import annotations
import codecs, locale, re
from dataclasses import dataclass
from typing import Optional, List, Union, Callable, Tuple

from qarma_core import Mode, ACCEPTED, REJECTED, _invoke

PROGRESS_DONE = 100
AUTO_CLOSE_DELAY_MS = 250
SCROLL_MIN_MS = 200
SCROLL_MAX_MS = 2500
NOTIFICATION_USAGE = ("icon: <filename>\nmessage: <UTF-8 encoded text>\n"
                      "tooltip: <UTF-8 encoded text>\nvisible: <true|false>")


# ---------------- Update events -----------------
@dataclass(frozen=True)
class SetProgress:
    value: int


@dataclass(frozen=True)
class Pulsate:
    enabled: bool = True


@dataclass(frozen=True)
class AppendText:
    text: str


@dataclass(frozen=True)
class SetVisible:
    visible: bool


@dataclass(frozen=True)
class SetNotificationText:
    text: str


@dataclass(frozen=True)
class SetHints:
    hints: str


@dataclass(frozen=True)
class EndOfStream:
    pass


UpdateEvent = Union[SetProgress, Pulsate, AppendText, SetVisible, SetNotificationText, SetHints, EndOfStream]


# ---------------- Decoding / line splitting -----------------
def _decoder():
    enc = locale.getpreferredencoding(False) or 'utf-8'
    try:
        return codecs.getincrementaldecoder(enc)(errors='replace')
    except LookupError:
        return codecs.getincrementaldecoder('utf-8')(errors='replace')


class LineBuffer:
    """Splits a chunked byte stream into lines.

    A line ends with ``\\n`` or with end-of-stream; an unterminated tail is
    kept until the next chunk. Multi-byte characters split across chunks are
    decoded correctly.
    """
    def __init__(self):
        self._dec = _decoder()
        self._tail = ''

    def decode(self, data: bytes, final: bool = False) -> str:
        return self._dec.decode(data, final)

    def feed(self, data: bytes) -> List[str]:
        text = self._tail + self.decode(data)
        parts = text.split('\n')
        self._tail = parts.pop()
        return parts

    def flush(self) -> List[str]:
        rest = self._tail + self.decode(b'', final=True)
        self._tail = ''
        return [rest] if rest else []


_PROGRESS_RE = re.compile(r'^\s*[+-]?\d+\s*$')
_PULSATE_RE = re.compile(r'^\s*pulsate\s*:\s*(\S+)\s*$', re.IGNORECASE)


def parse_progress_line(line: str) -> Optional[UpdateEvent]:
    if _PROGRESS_RE.match(line):
        u = int(line.strip())
        return SetProgress(min(PROGRESS_DONE, u))
    m = _PULSATE_RE.match(line)
    if m:
        return Pulsate(m.group(1).lower() not in ('false', '0'))
    return None


def split_key_value(line: str) -> Optional[Tuple[str, str]]:
    if ':' not in line:
        return None
    key, value = line.split(':', 1)
    return key.strip(), value.strip()


class LiveProtocol:
    """Turns raw stdin chunks into UpdateEvents for one dialog mode."""
    def __init__(self, mode: Mode, callbacks=None, system_notifications: bool = False):
        if mode not in (Mode.PROGRESS, Mode.TEXT_INFO, Mode.NOTIFICATION):
            raise ValueError(f"{mode.value} dialogs do not read stdin")
        self.mode = mode
        self.callbacks = callbacks
        self.system_notifications = system_notifications
        self._lines = LineBuffer()
        self.ended = False

    def feed(self, data: bytes) -> List[UpdateEvent]:
        if self.ended:
            return []
        if self.mode is Mode.TEXT_INFO:
            text = self._lines.decode(data)
            return [AppendText(text)] if text else []
        return self._parse_lines(self._lines.feed(data))

    def end(self) -> List[UpdateEvent]:
        """End-of-stream: flush any unterminated line, then EndOfStream (once)."""
        if self.ended:
            return []
        self.ended = True
        if self.mode is Mode.TEXT_INFO:
            text = self._lines.decode(b'', final=True)
            events: List[UpdateEvent] = [AppendText(text)] if text else []
        else:
            events = self._parse_lines(self._lines.flush())
        events.append(EndOfStream())
        return events

    def _parse_lines(self, lines: List[str]) -> List[UpdateEvent]:
        if self.mode is Mode.PROGRESS:
            return [e for e in (parse_progress_line(l) for l in lines) if e is not None]
        return self._parse_notification(lines)

    def _parse_notification(self, lines: List[str]) -> List[UpdateEvent]:
        events: List[UpdateEvent] = []
        needs_help = True
        for line in lines:
            kv = split_key_value(line)
            if kv is None:
                continue
            key, value = kv
            if key == 'icon':
                needs_help = False
                _invoke(self.callbacks, 'warn', "'icon' command not yet supported")
            elif key in ('message', 'tooltip'):
                needs_help = False
                events.append(SetNotificationText(value))
            elif key == 'visible':
                needs_help = False
                if self.system_notifications:
                    _invoke(self.callbacks, 'warn', "'visible' command only supported for failsafe dialog notification")
                events.append(SetVisible(value.lower() not in ('false', '0')))
            elif key == 'hints':
                needs_help = False
                events.append(SetHints(value))
        if needs_help and any(l.strip() for l in lines):
            _invoke(self.callbacks, 'log', NOTIFICATION_USAGE)
        return events


# ---------------- Progress -----------------
class ProgressModel:
    """Progress bar state driven by SetProgress / Pulsate events.

    Reaching 100 (also when it started there) either requests auto-close or flips cancel to accept
    semantics (relabelled ``Ok``); leaving 100 flips it back.
    """
    def __init__(self, percentage: int = 0, pulsate: bool = False, auto_close: bool = False,
                 cancel_label: Optional[str] = None):
        self.value = min(PROGRESS_DONE, max(0, percentage))
        self.pulsating = pulsate
        self.auto_close = auto_close
        self.default_cancel_label = cancel_label or 'Cancel'
        self.cancel_label = self.default_cancel_label
        self.cancel_accepts = False
        self.close_requested = False

    @classmethod
    def from_descriptor(cls, d, cancel_label: Optional[str] = None) -> 'ProgressModel':
        return cls(d.percentage, d.pulsate, d.auto_close, cancel_label)

    @property
    def complete(self) -> bool:
        return self.value == PROGRESS_DONE

    def apply(self, event: UpdateEvent) -> bool:
        """Apply one event; False when it was rejected or had no effect."""
        if isinstance(event, Pulsate):
            changed = self.pulsating != event.enabled
            self.pulsating = event.enabled
            return changed
        if not isinstance(event, SetProgress):
            return False
        if self.pulsating or event.value < 0:
            return False
        self.value = min(PROGRESS_DONE, event.value)
        done = self.cancel_accepts or self.close_requested
        if self.value == PROGRESS_DONE and not done:
            if self.auto_close:
                self.close_requested = True
            else:
                self.cancel_accepts = True
                self.cancel_label = 'Ok'
        elif self.value != PROGRESS_DONE and self.cancel_accepts:
            self.cancel_accepts = False
            self.cancel_label = self.default_cancel_label
        return True

    def cancel(self) -> str:
        return ACCEPTED if self.cancel_accepts else REJECTED


# ---------------- Text info -----------------
@dataclass(frozen=True)
class ScrollPlan:
    start: int
    end: int
    duration: int


def scroll_duration(distance: int) -> Optional[int]:
    if distance <= 0:
        return None
    return min(max(SCROLL_MIN_MS, distance), SCROLL_MAX_MS)


def read_text_file(path: str, callbacks=None) -> str:
    enc = locale.getpreferredencoding(False) or 'utf-8'
    try:
        with open(path, 'r', encoding=enc, errors='replace') as f:
            return f.read()
    except OSError as e:
        _invoke(callbacks, 'warn', f"cannot read {path}: {e.strerror or e}")
        return ''


class TextInfoModel:
    """Text buffer with deferred appends while a scroll animation runs."""
    def __init__(self, text: str = '', auto_scroll: bool = False):
        self.text = text
        self.pending = ''
        self.auto_scroll = auto_scroll
        self.animating = False
        self.scroll_offset = 0

    def append(self, chunk: str) -> bool:
        """Queue ``chunk``; True when the text changed (flushed) right away."""
        self.pending += chunk
        if self.animating:
            return False
        return self.flush()

    def flush(self) -> bool:
        if not self.pending:
            return False
        self.text += self.pending
        self.pending = ''
        return True

    def plan_scroll(self, old_offset: int, new_maximum: int) -> Optional[ScrollPlan]:
        """Hold the view at ``old_offset`` and glide to the new maximum."""
        if not self.auto_scroll:
            return None
        self.scroll_offset = old_offset
        duration = scroll_duration(new_maximum - old_offset)
        if duration is None:
            return None
        self.animating = True
        return ScrollPlan(old_offset, new_maximum, duration)

    def animation_finished(self, end_offset: Optional[int] = None) -> bool:
        self.animating = False
        if end_offset is not None:
            self.scroll_offset = end_offset
        return self.flush()


# ---------------- List selection -----------------
class ListSelection:
    """Row selection / check state of a list dialog.

    Radio lists uncheck all siblings when a row gets checked; the handler is
    guarded so the programmatic unchecking does not re-enter it.
    """
    def __init__(self, rows: List[Tuple[str, ...]], multiple: bool = False, checkable: bool = False,
                 exclusive: bool = False):
        self.rows = rows
        self.multiple = multiple
        self.checkable = checkable
        self.checked = [False] * len(rows)
        self.selected: List[int] = []
        self._listeners: List[Callable[[int], None]] = []
        self._toggling = False
        if exclusive:
            self.on_item_changed(self._uncheck_siblings)

    def on_item_changed(self, cb: Callable[[int], None]):
        self._listeners.append(cb)

    def set_checked(self, row: int, checked: bool):
        if not self.checkable or self.checked[row] == checked:
            return
        self.checked[row] = checked
        for cb in list(self._listeners):
            cb(row)

    def _uncheck_siblings(self, row: int):
        if self._toggling or not self.checked[row]:
            return
        self._toggling = True
        try:
            for i in range(len(self.rows)):
                if i != row:
                    self.set_checked(i, False)
        finally:
            self._toggling = False

    def select(self, row: int):
        if self.checkable:
            return
        if self.multiple:
            if row not in self.selected:
                self.selected.append(row)
        else:
            self.selected = [row]

    def selected_values(self) -> List[str]:
        if self.selected:
            return [self.rows[i][0] for i in self.selected]
        if self.checkable:
            return [(r[1] if len(r) > 1 else '') for r, on in zip(self.rows, self.checked) if on]
        return []
