"""Dialog descriptors and their builders.

One frozen dataclass per dialog mode (a closed tagged union keyed by
``Mode``) and one builder per mode. Builders walk the filtered token stream
once: matched flags consume their value (or '' at the end of the list),
unknown ``--`` flags warn through the callbacks, other tokens are positional
data where the mode has any. Numeric flags with a malformed value raise
ConfigError.
"""
from __future__ import annotations
from datetime import date
from dataclasses import dataclass, field, replace
from typing import Optional, List, Tuple, ClassVar, Callable, Dict, Union

from qarma_core import (
    ConfigError, Mode, MessageKind, MODE_FLAGS, MESSAGE_FLAGS, QarmaCallbacks, TokenStream,
    _invoke, parse_int, parse_uint,
)

DEFAULT_SEPARATOR = '|'
SCALE_DEFAULT_TEXT = 'Enter a value'
MESSAGE_ICONS = {
    MessageKind.ERROR: 'dialog-error',
    MessageKind.INFO: 'dialog-information',
    MessageKind.QUESTION: 'dialog-question',
    MessageKind.WARNING: 'dialog-warning',
}


def chunk_rows(values: Tuple[str, ...], column_count: int) -> List[Tuple[str, ...]]:
    """Rows of ``max(column_count, 1)`` cells; the last row may be short."""
    width = max(column_count, 1)
    return [tuple(values[i:i + width]) for i in range(0, len(values), width)]


class _Descriptor:
    mode: ClassVar[Mode]

    @property
    def listens_to_stdin(self) -> bool:
        return False


# ---------------- Descriptors -----------------
@dataclass(frozen=True)
class CalendarDescriptor(_Descriptor):
    year: int
    month: int
    day: int
    text: str = ''
    date_format: Optional[str] = None
    mode: ClassVar[Mode] = Mode.CALENDAR


@dataclass(frozen=True)
class EntryDescriptor(_Descriptor):
    text: str = ''
    entry_text: str = ''
    hide_text: bool = False
    mode: ClassVar[Mode] = Mode.ENTRY


@dataclass(frozen=True)
class MessageDescriptor(_Descriptor):
    kind: MessageKind
    text: str = ''
    icon_name: Optional[str] = None
    wrap: bool = True
    markup: bool = True
    default_cancel: bool = False
    mode: ClassVar[Mode] = Mode.MESSAGE

    @property
    def icon(self) -> str:
        return self.icon_name or MESSAGE_ICONS[self.kind]

    @property
    def buttons(self) -> Tuple[str, ...]:
        return ('ok', 'cancel') if self.kind is MessageKind.QUESTION else ('ok',)

    @property
    def default_button(self) -> str:
        return 'cancel' if (self.default_cancel and 'cancel' in self.buttons) else 'ok'


@dataclass(frozen=True)
class FileSelectionDescriptor(_Descriptor):
    filename: Optional[str] = None
    multiple: bool = False
    directory: bool = False
    save: bool = False
    separator: str = DEFAULT_SEPARATOR
    confirm_overwrite: bool = False
    filters: Tuple[str, ...] = ()
    mode: ClassVar[Mode] = Mode.FILE_SELECTION


@dataclass(frozen=True)
class ListDescriptor(_Descriptor):
    text: str = ''
    columns: Tuple[str, ...] = ()
    hidden_columns: Tuple[int, ...] = ()
    multiple: bool = False
    values: Tuple[str, ...] = ()
    checklist: bool = False
    radiolist: bool = False
    imagelist: bool = False
    editable: bool = False
    hide_header: bool = False
    separator: str = DEFAULT_SEPARATOR
    mode: ClassVar[Mode] = Mode.LIST

    @property
    def checkable(self) -> bool:
        return self.checklist or self.radiolist

    @property
    def exclusive(self) -> bool:
        return self.radiolist

    @property
    def column_count(self) -> int:
        return max(len(self.columns), 1)

    def rows(self) -> List[Tuple[str, ...]]:
        return chunk_rows(self.values, len(self.columns))


@dataclass(frozen=True)
class NotificationDescriptor(_Descriptor):
    text: str = ''
    listen: bool = False
    hints: str = ''
    mode: ClassVar[Mode] = Mode.NOTIFICATION

    @property
    def listens_to_stdin(self) -> bool:
        return self.listen


@dataclass(frozen=True)
class ProgressDescriptor(_Descriptor):
    text: str = ''
    percentage: int = 0
    pulsate: bool = False
    auto_close: bool = False
    auto_kill: bool = False
    no_cancel: bool = False
    mode: ClassVar[Mode] = Mode.PROGRESS

    @property
    def listens_to_stdin(self) -> bool:
        return True


@dataclass(frozen=True)
class ScaleDescriptor(_Descriptor):
    text: str = SCALE_DEFAULT_TEXT
    value: int = 0
    min_value: int = 0
    max_value: int = 100
    step: int = 1
    print_partial: bool = False
    hide_value: bool = False
    mode: ClassVar[Mode] = Mode.SCALE


@dataclass(frozen=True)
class TextInfoDescriptor(_Descriptor):
    filename: Optional[str] = None
    editable: bool = False
    font: Optional[str] = None
    checkbox: Optional[str] = None
    auto_scroll: bool = False
    mode: ClassVar[Mode] = Mode.TEXT_INFO

    @property
    def listens_to_stdin(self) -> bool:
        return self.filename is None


@dataclass(frozen=True)
class ColorSelectionDescriptor(_Descriptor):
    color: Optional[str] = None
    show_palette: bool = False
    mode: ClassVar[Mode] = Mode.COLOR_SELECTION


@dataclass(frozen=True)
class PasswordDescriptor(_Descriptor):
    username: bool = False
    mode: ClassVar[Mode] = Mode.PASSWORD


FIELD_ENTRY = 'entry'
FIELD_PASSWORD = 'password'
FIELD_CALENDAR = 'calendar'
FIELD_LIST = 'list'
FIELD_COMBO = 'combo'
FIELD_CHECKBOX = 'checkbox'


@dataclass(frozen=True)
class FormField:
    kind: str
    label: str
    values: Tuple[str, ...] = ()   # list cells or combo options
    columns: Tuple[str, ...] = ()
    show_header: bool = False

    def rows(self) -> List[Tuple[str, ...]]:
        return chunk_rows(self.values, len(self.columns))


@dataclass(frozen=True)
class FormsDescriptor(_Descriptor):
    fields: Tuple[FormField, ...] = ()
    text: str = ''
    separator: str = DEFAULT_SEPARATOR
    date_format: Optional[str] = None
    mode: ClassVar[Mode] = Mode.FORMS


DialogDescriptor = Union[
    CalendarDescriptor, EntryDescriptor, MessageDescriptor, FileSelectionDescriptor, ListDescriptor,
    NotificationDescriptor, ProgressDescriptor, ScaleDescriptor, TextInfoDescriptor,
    ColorSelectionDescriptor, PasswordDescriptor, FormsDescriptor,
]


# ---------------- Builders -----------------
def _unknown(tok: str, own_flags, callbacks):
    if tok.startswith('--') and tok not in own_flags:
        _invoke(callbacks, 'warn', f"unspecific argument {tok}")


def build_calendar(tokens: List[str], callbacks=None, today: Optional[date] = None) -> CalendarDescriptor:
    today = today or date.today()
    y, m, d = today.year, today.month, today.day
    text = ''; fmt = None
    stream = TokenStream(tokens)
    for tok in stream:
        if tok == '--text': text = stream.value()
        elif tok == '--day': d = parse_uint(tok, stream.value())
        elif tok == '--month': m = parse_uint(tok, stream.value())
        elif tok == '--year': y = parse_uint(tok, stream.value())
        elif tok == '--date-format': fmt = stream.value()
        else: _unknown(tok, ('--calendar',), callbacks)
    return CalendarDescriptor(year=y, month=m, day=d, text=text, date_format=fmt)


def build_entry(tokens: List[str], callbacks=None, **_) -> EntryDescriptor:
    kw = {}
    stream = TokenStream(tokens)
    for tok in stream:
        if tok == '--text': kw['text'] = stream.value()
        elif tok == '--entry-text': kw['entry_text'] = stream.value()
        elif tok == '--hide-text': kw['hide_text'] = True
        else: _unknown(tok, ('--entry',), callbacks)
    return EntryDescriptor(**kw)


def build_password(tokens: List[str], callbacks=None, **_) -> PasswordDescriptor:
    username = False
    for tok in tokens:
        if tok == '--username': username = True
        else: _unknown(tok, ('--password',), callbacks)
    return PasswordDescriptor(username=username)


def build_message(tokens: List[str], callbacks=None, kind: MessageKind = MessageKind.INFO, **_) -> MessageDescriptor:
    kw = {}
    stream = TokenStream(tokens)
    for tok in stream:
        if tok == '--text': kw['text'] = stream.value()
        elif tok == '--icon-name': kw['icon_name'] = stream.value()
        elif tok == '--no-wrap': kw['wrap'] = False
        elif tok == '--no-markup': kw['markup'] = False
        elif tok == '--default-cancel': kw['default_cancel'] = True
        else: _unknown(tok, MESSAGE_FLAGS, callbacks)
    return MessageDescriptor(kind=kind, **kw)


def build_file_selection(tokens: List[str], callbacks=None, **_) -> FileSelectionDescriptor:
    kw = {}
    stream = TokenStream(tokens)
    for tok in stream:
        if tok == '--filename': kw['filename'] = stream.value()
        elif tok == '--multiple': kw['multiple'] = True
        elif tok == '--directory': kw['directory'] = True
        elif tok == '--save': kw['save'] = True
        elif tok == '--separator': kw['separator'] = stream.value()
        elif tok == '--confirm-overwrite': kw['confirm_overwrite'] = True
        elif tok == '--file-filter': kw['filters'] = tuple(p for p in stream.value().split(' ') if p)
        else: _unknown(tok, ('--file-selection',), callbacks)
    return FileSelectionDescriptor(**kw)


def build_list(tokens: List[str], callbacks=None, **_) -> ListDescriptor:
    kw = {}
    columns: List[str] = []; hidden: List[int] = []; values: List[str] = []
    stream = TokenStream(tokens)
    for tok in stream:
        if tok == '--text': kw['text'] = stream.value()
        elif tok == '--multiple': kw['multiple'] = True
        elif tok == '--column': columns.append(stream.value())
        elif tok == '--editable': kw['editable'] = True
        elif tok == '--hide-header': kw['hide_header'] = True
        elif tok == '--separator': kw['separator'] = stream.value()
        elif tok == '--hide-column': hidden.append(parse_uint(tok, stream.value()))
        elif tok == '--print-column':
            stream.value()
            _invoke(callbacks, 'warn', '--print-column is not supported; printing the first column')
        elif tok == '--checklist': kw['checklist'] = True
        elif tok == '--radiolist': kw['radiolist'] = True
        elif tok == '--imagelist': kw['imagelist'] = True
        elif tok.startswith('--'): _unknown(tok, ('--list',), callbacks)
        else: values.append(tok)
    if kw.get('checklist') or kw.get('radiolist'):
        kw['editable'] = False
    return ListDescriptor(columns=tuple(columns), hidden_columns=tuple(hidden), values=tuple(values), **kw)


def build_notification(tokens: List[str], callbacks=None, **_) -> NotificationDescriptor:
    kw = {}
    stream = TokenStream(tokens)
    for tok in stream:
        if tok == '--text': kw['text'] = stream.value()
        elif tok == '--listen': kw['listen'] = True
        elif tok == '--hint': kw['hints'] = stream.value()
        else: _unknown(tok, ('--notification',), callbacks)
    return NotificationDescriptor(**kw)


def build_progress(tokens: List[str], callbacks=None, **_) -> ProgressDescriptor:
    kw = {}
    stream = TokenStream(tokens)
    for tok in stream:
        if tok == '--text': kw['text'] = stream.value()
        elif tok == '--percentage': kw['percentage'] = min(100, parse_uint(tok, stream.value()))
        elif tok == '--pulsate': kw['pulsate'] = True
        elif tok == '--auto-close': kw['auto_close'] = True
        elif tok == '--auto-kill': kw['auto_kill'] = True
        elif tok == '--no-cancel': kw['no_cancel'] = True
        else: _unknown(tok, ('--progress',), callbacks)
    return ProgressDescriptor(**kw)


def build_scale(tokens: List[str], callbacks=None, **_) -> ScaleDescriptor:
    text = SCALE_DEFAULT_TEXT
    value, lo, hi, step = 0, 0, 100, 1
    print_partial = hide_value = False
    stream = TokenStream(tokens)
    for tok in stream:
        if tok == '--text': text = stream.value()
        elif tok == '--value': value = parse_int(tok, stream.value())
        elif tok == '--min-value':
            lo = parse_int(tok, stream.value()); hi = max(hi, lo)
        elif tok == '--max-value':
            hi = parse_int(tok, stream.value()); lo = min(lo, hi)
        elif tok == '--step': step = parse_int(tok, stream.value())
        elif tok == '--print-partial': print_partial = True
        elif tok == '--hide-value': hide_value = True
        else: _unknown(tok, ('--scale',), callbacks)
    value = min(max(value, lo), hi)
    return ScaleDescriptor(text=text, value=value, min_value=lo, max_value=hi, step=step,
                           print_partial=print_partial, hide_value=hide_value)


def build_text_info(tokens: List[str], callbacks=None, **_) -> TextInfoDescriptor:
    kw = {}
    stream = TokenStream(tokens)
    for tok in stream:
        if tok == '--filename': kw['filename'] = stream.value()
        elif tok == '--editable': kw['editable'] = True
        elif tok == '--font': kw['font'] = stream.value()
        elif tok == '--checkbox': kw['checkbox'] = stream.value()
        elif tok == '--auto-scroll': kw['auto_scroll'] = True
        else: _unknown(tok, ('--text-info',), callbacks)
    return TextInfoDescriptor(**kw)


def build_color_selection(tokens: List[str], callbacks=None, **_) -> ColorSelectionDescriptor:
    kw = {}
    stream = TokenStream(tokens)
    for tok in stream:
        if tok == '--color': kw['color'] = stream.value()
        elif tok == '--show-palette':
            kw['show_palette'] = True
            _invoke(callbacks, 'warn', 'The show-palette parameter is not supported by qarma. Sorry.')
        else: _unknown(tok, ('--color-selection',), callbacks)
    return ColorSelectionDescriptor(**kw)


class _FormsDraft:
    """Mutable state of the forms builder; lists and combos commit late."""
    def __init__(self):
        self.fields: List[FormField] = []
        self.list_at: Optional[int] = None
        self.list_values: List[str] = []
        self.list_columns: List[str] = []
        self.list_header = False
        self.combo_at: Optional[int] = None
        self.combo_values: Optional[List[str]] = None

    def add(self, f: FormField) -> int:
        self.fields.append(f)
        return len(self.fields) - 1

    def commit_list(self):
        # Pending values wait for a list when none is declared yet.
        if self.list_at is None:
            return
        self.fields[self.list_at] = replace(self.fields[self.list_at], values=tuple(self.list_values),
                                            columns=tuple(self.list_columns), show_header=self.list_header)
        self.list_values = []; self.list_columns = []; self.list_header = False
        self.list_at = None

    def add_list(self, label: str):
        self.commit_list()
        self.list_at = self.add(FormField(FIELD_LIST, label))

    def add_combo(self, label: str):
        if self.combo_values is not None:
            self.combo_at = self.add(FormField(FIELD_COMBO, label, values=tuple(self.combo_values)))
            self.combo_values = None
        else:
            self.combo_at = self.add(FormField(FIELD_COMBO, label))

    def set_combo_values(self, values: List[str]):
        if self.combo_at is not None:
            target = self.fields[self.combo_at]
            self.fields[self.combo_at] = replace(target, values=target.values + tuple(values))
        else:
            self.combo_values = values


def build_forms(tokens: List[str], callbacks=None, **_) -> FormsDescriptor:
    draft = _FormsDraft()
    kw = {}
    stream = TokenStream(tokens)
    for tok in stream:
        if tok == '--add-entry': draft.add(FormField(FIELD_ENTRY, stream.value()))
        elif tok == '--add-password': draft.add(FormField(FIELD_PASSWORD, stream.value()))
        elif tok == '--add-calendar': draft.add(FormField(FIELD_CALENDAR, stream.value()))
        elif tok == '--add-list': draft.add_list(stream.value())
        elif tok == '--list-values': draft.list_values = stream.value().split('|')
        elif tok == '--column-values': draft.list_columns = stream.value().split('|')
        elif tok == '--show-header': draft.list_header = True
        elif tok == '--add-combo': draft.add_combo(stream.value())
        elif tok == '--combo-values': draft.set_combo_values(stream.value().split('|'))
        elif tok == '--add-checkbox': draft.add(FormField(FIELD_CHECKBOX, stream.value()))
        elif tok == '--text': kw['text'] = stream.value()
        elif tok == '--separator': kw['separator'] = stream.value()
        elif tok == '--forms-date-format': kw['date_format'] = stream.value()
        else: _unknown(tok, ('--forms',), callbacks)
    draft.commit_list()
    return FormsDescriptor(fields=tuple(draft.fields), **kw)


BUILDERS: Dict[Mode, Callable[..., _Descriptor]] = {
    Mode.CALENDAR: build_calendar,
    Mode.ENTRY: build_entry,
    Mode.MESSAGE: build_message,
    Mode.FILE_SELECTION: build_file_selection,
    Mode.LIST: build_list,
    Mode.NOTIFICATION: build_notification,
    Mode.PROGRESS: build_progress,
    Mode.SCALE: build_scale,
    Mode.TEXT_INFO: build_text_info,
    Mode.COLOR_SELECTION: build_color_selection,
    Mode.PASSWORD: build_password,
    Mode.FORMS: build_forms,
}


def build_descriptor(mode_flag: str, tokens: List[str], callbacks: Optional[QarmaCallbacks] = None,
                     today: Optional[date] = None) -> DialogDescriptor:
    """Build the descriptor for ``mode_flag`` from general-filtered tokens.

    Mode flags other than the selected one are reported as unspecific
    arguments; the first mode flag wins.
    """
    if mode_flag not in MODE_FLAGS:
        raise ConfigError(f"unknown dialog mode {mode_flag}")
    mode, kind = MODE_FLAGS[mode_flag]
    builder = BUILDERS[mode]
    if mode is Mode.MESSAGE:
        return builder(tokens, callbacks=callbacks, kind=kind)
    return builder(tokens, callbacks=callbacks, today=today)
