"""Core parsing layer for Qarma (tokenizer, general options, mode dispatch).

Separated from the Qt runtime so unit tests and help/usage output do not
require Qt.

Pipeline:
  tokenize(argv) -> read_general(tokens) -> find_mode(tokens) -> builder
  (see qarma_descriptors) -> Invocation

Everything here is pure; diagnostics go through a QarmaCallbacks object and
fatal configuration problems raise ConfigError.
"""
from __future__ import annotations
import os, sys, re, json, uuid
from datetime import date, datetime, timezone
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, List, Dict, Any, Iterable, Tuple

__version__ = "1.0.0"

# ---------------- Exit Codes & Schema ----------------
SCHEMA_VERSION = 1
EXIT_SUCCESS = 0
EXIT_REJECTED = 1
EXIT_CONFIG_ERROR = 1
# --timeout quits cleanly, without a result.
EXIT_TIMEOUT = EXIT_SUCCESS

# Terminal dialog states reported by a dialog host
ACCEPTED = 'accepted'
REJECTED = 'rejected'

__all__ = [
    "__version__",
    "ConfigError",
    "QarmaCallbacks",
    "CLICallbacks",
    "GeneralConfig",
    "Mode",
    "MessageKind",
    "Invocation",
    "TokenStream",
    "tokenize",
    "read_general",
    "find_mode",
    "parse_invocation",
    "load_general_defaults",
]


class ConfigError(Exception):
    """Fatal configuration error: reported on stderr, exit 1, no dialog."""


# ---------------- Diagnostics -----------------
class QarmaCallbacks:
    """Interface for diagnostics sinks (all optional)."""
    def log(self, message: str): ...  # pragma: no cover - interface stub
    def warn(self, message: str): ...
    def debug(self, message: str): ...


def _invoke(cb, name: str, *a):
    if cb is None: return
    fn = getattr(cb, name, None)
    if callable(fn):
        try: fn(*a)
        except Exception: pass


class CLICallbacks(QarmaCallbacks):
    """Console sink. Writes to stderr because stdout carries the dialog result."""
    def __init__(self, stream=None, debug: bool = False, json_logs: bool = False):
        self.stream = stream if stream is not None else sys.stderr
        self.show_debug = debug
        self.json_logs = json_logs
        self.run_id = uuid.uuid4().hex
        self._seq = 0

    def _emit(self, level: str, message: str):
        if self.json_logs:
            self._seq += 1
            payload = {
                'event': level,
                'ts': datetime.now(timezone.utc).isoformat(),
                'seq': self._seq,
                'run_id': self.run_id,
                'schema_version': SCHEMA_VERSION,
                'message': message,
            }
            line = json.dumps(payload)
        else:
            line = f"[{level}] {message}" if level != 'log' else message
        print(line, file=self.stream, flush=True)

    def log(self, message: str): self._emit('log', message)
    def warn(self, message: str): self._emit('warn', message)
    def debug(self, message: str):
        if self.show_debug: self._emit('debug', message)

    @classmethod
    def from_env(cls, env: Optional[Dict[str, str]] = None, stream=None) -> 'CLICallbacks':
        env = os.environ if env is None else env
        return cls(stream=stream, debug=_truthy(env.get('QARMA_DEBUG')), json_logs=_truthy(env.get('QARMA_JSON_LOGS')))


def _truthy(v: Optional[str]) -> bool:
    return bool(v) and v.strip().lower() not in ('0', 'false', 'no', 'off', '')


# ---------------- Tokens -----------------
def tokenize(argv: Iterable[str]) -> List[str]:
    """Split ``--opt=value`` into two tokens; everything else passes through."""
    tokens: List[str] = []
    for arg in argv:
        if arg.startswith('--') and '=' in arg:
            flag, value = arg.split('=', 1)
            tokens.append(flag); tokens.append(value)
        else:
            tokens.append(arg)
    return tokens


class TokenStream:
    """Single-pass cursor over tokens.

    Iterating yields tokens in order; ``value()`` consumes the following token
    as the argument of the current flag, or returns '' at the end of the list.
    """
    def __init__(self, tokens: Iterable[str]):
        self._tokens = list(tokens)
        self._i = -1

    def __iter__(self): return self

    def __next__(self) -> str:
        self._i += 1
        if self._i >= len(self._tokens):
            raise StopIteration
        return self._tokens[self._i]

    def value(self) -> str:
        self._i += 1
        return self._tokens[self._i] if self._i < len(self._tokens) else ''


_UINT_RE = re.compile(r'^\s*\+?\d+\s*$')
_INT_RE = re.compile(r'^\s*[+-]?\d+\s*$')


def parse_uint(flag: str, text: str) -> int:
    if text is None or not _UINT_RE.match(str(text)):
        raise ConfigError(f"{flag} must be followed by a positive number")
    return int(str(text).strip())


def parse_int(flag: str, text: str) -> int:
    if text is None or not _INT_RE.match(str(text)):
        raise ConfigError(f"{flag} must be followed by a number")
    return int(str(text).strip())


def is_int_text(text: str) -> bool:
    return bool(text) and bool(_INT_RE.match(text))


# ---------------- General options -----------------
@dataclass(frozen=True)
class GeneralConfig:
    title: Optional[str] = None
    window_icon: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    timeout: Optional[int] = None          # seconds
    ok_label: Optional[str] = None
    cancel_label: Optional[str] = None
    modal: bool = False
    attach: Optional[int] = None           # opaque parent window handle


GENERAL_VALUE_FLAGS = {
    '--title': 'title',
    '--window-icon': 'window_icon',
    '--ok-label': 'ok_label',
    '--cancel-label': 'cancel_label',
}
GENERAL_NUMERIC_FLAGS = {
    '--width': 'width',
    '--height': 'height',
    '--timeout': 'timeout',
    '--attach': 'attach',
}


def read_general(tokens: List[str], defaults: Optional[GeneralConfig] = None) -> Tuple[GeneralConfig, List[str]]:
    """Consume general flags anywhere in ``tokens``.

    Returns the config and the remaining tokens in original order. Raises
    ConfigError for a malformed numeric value.
    """
    values: Dict[str, Any] = {}
    remains: List[str] = []
    stream = TokenStream(tokens)
    for tok in stream:
        if tok in GENERAL_VALUE_FLAGS:
            values[GENERAL_VALUE_FLAGS[tok]] = stream.value()
        elif tok in GENERAL_NUMERIC_FLAGS:
            values[GENERAL_NUMERIC_FLAGS[tok]] = parse_uint(tok, stream.value())
        elif tok == '--modal':
            values['modal'] = True
        else:
            remains.append(tok)
    base = defaults or GeneralConfig()
    return replace(base, **values), remains


# ---------------- Config file -----------------
def _load_config_file(path: str) -> dict:
    if not path or not os.path.exists(path): return {}
    import yaml
    try:
        with open(path, 'r', encoding='utf-8') as f:
            if path.lower().endswith(('.yml', '.yaml')):
                data = yaml.safe_load(f) or {}
            else:
                data = json.load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigError(f"cannot read config file {path}: {e}") from e
    return data if isinstance(data, dict) else {}


def load_general_defaults(env: Optional[Dict[str, str]] = None, callbacks: Optional[QarmaCallbacks] = None) -> GeneralConfig:
    """General defaults from the file named by QARMA_CONFIG (JSON or YAML).

    Values are validated like their command-line flags; unknown keys warn.
    """
    env = os.environ if env is None else env
    path = env.get('QARMA_CONFIG')
    if not path:
        return GeneralConfig()
    try:
        data = _load_config_file(path)
    except ConfigError as e:
        _invoke(callbacks, 'warn', str(e))
        return GeneralConfig()
    values: Dict[str, Any] = {}
    for key, raw in data.items():
        flag = '--' + str(key).replace('_', '-')
        if key in GENERAL_VALUE_FLAGS.values():
            values[key] = '' if raw is None else str(raw)
        elif key in GENERAL_NUMERIC_FLAGS.values():
            try:
                values[key] = parse_uint(flag, str(raw))
            except ConfigError as e:
                raise ConfigError(f"{e} (from {path})") from e
        elif key == 'modal':
            values[key] = raw if isinstance(raw, bool) else _truthy(str(raw))
        else:
            _invoke(callbacks, 'warn', f"ignoring unknown config key '{key}' in {path}")
    _invoke(callbacks, 'debug', f"loaded general defaults from {path}: {sorted(values)}")
    return GeneralConfig(**values)


# ---------------- Modes -----------------
class Mode(Enum):
    CALENDAR = 'calendar'
    ENTRY = 'entry'
    MESSAGE = 'message'
    FILE_SELECTION = 'file-selection'
    LIST = 'list'
    NOTIFICATION = 'notification'
    PROGRESS = 'progress'
    SCALE = 'scale'
    TEXT_INFO = 'text-info'
    COLOR_SELECTION = 'color-selection'
    PASSWORD = 'password'
    FORMS = 'forms'


class MessageKind(Enum):
    ERROR = 'error'
    INFO = 'info'
    QUESTION = 'question'
    WARNING = 'warning'


MODE_FLAGS: Dict[str, Tuple[Mode, Optional[MessageKind]]] = {
    '--calendar': (Mode.CALENDAR, None),
    '--entry': (Mode.ENTRY, None),
    '--error': (Mode.MESSAGE, MessageKind.ERROR),
    '--info': (Mode.MESSAGE, MessageKind.INFO),
    '--question': (Mode.MESSAGE, MessageKind.QUESTION),
    '--warning': (Mode.MESSAGE, MessageKind.WARNING),
    '--file-selection': (Mode.FILE_SELECTION, None),
    '--list': (Mode.LIST, None),
    '--notification': (Mode.NOTIFICATION, None),
    '--progress': (Mode.PROGRESS, None),
    '--scale': (Mode.SCALE, None),
    '--text-info': (Mode.TEXT_INFO, None),
    '--color-selection': (Mode.COLOR_SELECTION, None),
    '--password': (Mode.PASSWORD, None),
    '--forms': (Mode.FORMS, None),
}
MESSAGE_FLAGS = frozenset(f for f, (m, _) in MODE_FLAGS.items() if m is Mode.MESSAGE)


def find_mode(tokens: Iterable[str]) -> Optional[str]:
    """First mode-selecting flag in ``tokens`` or None."""
    for tok in tokens:
        if tok in MODE_FLAGS:
            return tok
    return None


# ---------------- Invocation -----------------
@dataclass
class Invocation:
    general: GeneralConfig = field(default_factory=GeneralConfig)
    mode_flag: Optional[str] = None
    mode: Optional[Mode] = None
    kind: Optional[MessageKind] = None
    descriptor: Any = None
    help_categories: Optional[List[str]] = None  # set when help was requested
    version: bool = False

    @property
    def wants_help(self) -> bool:
        return self.help_categories is not None


def _help_categories(tokens: List[str]) -> Optional[List[str]]:
    cats = [tok[7:] for tok in tokens if tok == '-h' or tok.startswith('--help')]
    return cats or None


def parse_invocation(argv: Iterable[str], callbacks: Optional[QarmaCallbacks] = None,
                     env: Optional[Dict[str, str]] = None, today: Optional[date] = None) -> Invocation:
    """Turn raw process arguments (without program name) into an Invocation.

    Raises ConfigError for fatal configuration problems. Help and version
    requests short-circuit before any option is validated.
    """
    from qarma_descriptors import build_descriptor
    tokens = tokenize(argv)
    if not tokens:
        return Invocation(help_categories=[''])
    cats = _help_categories(tokens)
    if cats is not None:
        return Invocation(help_categories=cats)
    if '--version' in tokens:
        return Invocation(version=True)
    general, remains = read_general(tokens, load_general_defaults(env, callbacks))
    flag = find_mode(tokens)
    if flag is None:
        _invoke(callbacks, 'debug', 'no dialog mode given; showing usage')
        return Invocation(general=general, help_categories=[''])
    mode, kind = MODE_FLAGS[flag]
    descriptor = build_descriptor(flag, remains, callbacks=callbacks, today=today)
    _invoke(callbacks, 'debug', f"mode {flag} -> {type(descriptor).__name__}")
    return Invocation(general=general, mode_flag=flag, mode=mode, kind=kind, descriptor=descriptor)
