"""Qt runtime for Qarma: event loop, stdin channel, timers, scroll animation.

The session wires an Invocation to a dialog host. Live updates from stdin,
the auto-close timer, the ``--timeout`` timer and the auto-scroll animation
all run on one QCoreApplication event loop; the host reports the terminal
state and the result extractor prints the answer exactly once.
"""
from __future__ import annotations

import os, signal
from typing import Optional, Callable

from PySide6.QtCore import (
    QCoreApplication, QSocketNotifier, QTimer, QVariantAnimation, QEasingCurve
)

from qarma_core import (
    Invocation, Mode, ACCEPTED, REJECTED, EXIT_TIMEOUT, QarmaCallbacks, CLICallbacks, _invoke
)
from qarma_live import (
    LiveProtocol, ProgressModel, TextInfoModel, SetProgress, Pulsate, AppendText, EndOfStream,
    AUTO_CLOSE_DELAY_MS, read_text_file,
)
from qarma_notify import Notifier, NotificationTransport, NullTransport
from qarma_results import ResultExtractor
from qarma_host import ConsoleHost

APP_ARGV0 = 'qarma'
READ_CHUNK = 65536


# ---------------- Stdin -----------------
class StdinChannel:
    """Process-wide reader for fd 0 driven by a QSocketNotifier.

    Opened on first demand; later ``open`` calls return the same channel.
    The notifier is disabled while a chunk is handled and re-armed after.
    End-of-stream closes the channel for good.
    """
    _instance: Optional['StdinChannel'] = None

    def __init__(self, on_data: Callable[[bytes], None], on_end: Callable[[], None], fd: int = 0,
                 callbacks=None):
        self.fd = fd
        self.on_data = on_data
        self.on_end = on_end
        self.callbacks = callbacks
        self.closed = False
        self.notifier: Optional[QSocketNotifier] = None
        self._retired: Optional[QSocketNotifier] = None

    @classmethod
    def open(cls, on_data, on_end, fd: int = 0, callbacks=None) -> 'StdinChannel':
        if cls._instance is not None:
            return cls._instance
        chan = cls(on_data, on_end, fd, callbacks)
        cls._instance = chan
        try:
            os.fstat(fd)
        except OSError as e:
            _invoke(callbacks, 'warn', f"stdin is not readable: {e.strerror or e}")
            chan.closed = True
            QTimer.singleShot(0, on_end)
            return chan
        chan.notifier = QSocketNotifier(fd, QSocketNotifier.Type.Read)
        chan.notifier.activated.connect(chan._ready)
        _invoke(callbacks, 'debug', f"listening on fd {fd}")
        return chan

    @classmethod
    def reset(cls):
        """Forget the singleton (tests run several sessions per process)."""
        if cls._instance is not None:
            cls._instance.close()
        cls._instance = None

    def _ready(self, *_):
        if self.closed or self.notifier is None:
            return
        self.notifier.setEnabled(False)
        try:
            data = os.read(self.fd, READ_CHUNK)
        except BlockingIOError:
            self.notifier.setEnabled(True)
            return
        except OSError as e:
            _invoke(self.callbacks, 'warn', f"stdin read failed: {e.strerror or e}")
            data = b''
        if not data:
            self.close()
            self.on_end()
            return
        self.on_data(data)
        if not self.closed:
            self.notifier.setEnabled(True)

    def close(self):
        if self.closed and self.notifier is None:
            return
        self.closed = True
        if self.notifier is not None:
            self.notifier.setEnabled(False)
            # freed with the channel, not from inside its own activated signal
            self._retired = self.notifier
            self.notifier = None


# ---------------- Session -----------------
class Session:
    def __init__(self, invocation: Invocation, host=None, transport: Optional[NotificationTransport] = None,
                 callbacks: Optional[QarmaCallbacks] = None, stdout=None, stdin_fd: int = 0):
        self.invocation = invocation
        self.general = invocation.general
        self.descriptor = d = invocation.descriptor
        self.mode: Mode = d.mode
        self.callbacks = callbacks
        self.host = host if host is not None else ConsoleHost(callbacks=callbacks)
        self.transport = transport or NullTransport()
        self.stdin_fd = stdin_fd
        self.progress: Optional[ProgressModel] = None
        self.text: Optional[TextInfoModel] = None
        self.notifier: Optional[Notifier] = None
        if self.mode is Mode.PROGRESS:
            self.progress = ProgressModel.from_descriptor(d, self.general.cancel_label)
        elif self.mode is Mode.TEXT_INFO:
            initial = read_text_file(d.filename, callbacks) if d.filename else ''
            self.text = TextInfoModel(initial, d.auto_scroll)
        elif self.mode is Mode.NOTIFICATION:
            timeout_ms = self.general.timeout * 1000 if self.general.timeout else 0
            self.notifier = Notifier(self.host, self.transport, d.hints, timeout_ms, d.listen, callbacks)
        self.protocol: Optional[LiveProtocol] = None
        self.channel: Optional[StdinChannel] = None
        self.extractor = ResultExtractor(self.mode, getattr(d, 'auto_kill', False), stdout, callbacks)
        self.animation: Optional[QVariantAnimation] = None
        self._scroll_end = 0
        self.closed = False
        self.close_pending = False
        self.exit_code: Optional[int] = None

    # -- lifecycle --
    def start(self):
        d = self.descriptor
        if self.text is not None:
            self.host.set_text(self.text.text)
        if self.notifier is not None and d.text:
            self.notifier.send(d.text)
        self.host.show(self)
        if self.closed or not d.listens_to_stdin:
            return
        self.protocol = LiveProtocol(self.mode, self.callbacks, self.transport.available())
        self.channel = StdinChannel.open(self._on_data, self._on_end, self.stdin_fd, self.callbacks)

    def _on_data(self, data: bytes):
        if self.closed:
            return
        for event in self.protocol.feed(data):
            self.apply(event)

    def _on_end(self):
        if self.closed:
            return
        _invoke(self.callbacks, 'debug', 'stdin reached end of stream')
        for event in self.protocol.end():
            self.apply(event)

    def apply(self, event):
        if self.closed:
            return
        if isinstance(event, (SetProgress, Pulsate)):
            if self.progress is None or not self.progress.apply(event):
                return
            self.host.set_progress(self.progress.value, self.progress.pulsating)
            self.host.set_cancel_label(self.progress.cancel_label)
            if self.progress.close_requested and not self.close_pending:
                self.close_pending = True
                QTimer.singleShot(AUTO_CLOSE_DELAY_MS, lambda: self.finish(ACCEPTED))
        elif isinstance(event, AppendText):
            if self.text is not None:
                old = self.host.scroll_offset()
                if self.text.append(event.text):
                    self._text_flushed(old)
        elif isinstance(event, EndOfStream):
            self.host.stream_ended()
        elif self.notifier is not None:
            self.notifier.apply(event)

    # -- text-info scrolling --
    def _text_flushed(self, old_offset: int):
        self.host.set_text(self.text.text)
        plan = self.text.plan_scroll(old_offset, self.host.max_scroll())
        if plan is None:
            return
        self.host.set_scroll(plan.start)
        if self.animation is None:
            self.animation = QVariantAnimation()
            self.animation.setEasingCurve(QEasingCurve.Type.InOutCubic)
            self.animation.valueChanged.connect(lambda v: self.host.set_scroll(int(v)))
            self.animation.finished.connect(self._scroll_finished)
        anim = self.animation
        anim.stop()
        anim.setStartValue(plan.start)
        anim.setEndValue(plan.end)
        anim.setDuration(plan.duration)
        self._scroll_end = plan.end
        anim.start()

    def _scroll_finished(self):
        if self.closed:
            return
        end_offset = self._scroll_end
        self.host.set_scroll(end_offset)
        if self.text.animation_finished(end_offset):
            self._text_flushed(end_offset)
        if not self.text.animating:
            self.host.animation_finished()

    # -- terminal states --
    def cancel(self):
        self.finish(self.progress.cancel() if self.progress is not None else REJECTED)

    def finish(self, state: str):
        if self.closed:
            return
        self.closed = True
        result = self.host.result() if state == ACCEPTED else None
        self._teardown()
        self.exit_code = self.extractor.finish(state, result)
        _invoke(self.callbacks, 'debug', f"dialog {state}, exit code {self.exit_code}")
        QCoreApplication.exit(self.exit_code)

    def timeout(self):
        if self.closed:
            return
        self.closed = True
        _invoke(self.callbacks, 'debug', f"timeout after {self.general.timeout}s")
        self._teardown()
        self.exit_code = EXIT_TIMEOUT
        QCoreApplication.exit(self.exit_code)

    def _teardown(self):
        if self.animation is not None:
            self.animation.stop()
        if self.channel is not None:
            self.channel.close()
        self.host.close()


def run(invocation: Invocation, host=None, transport: Optional[NotificationTransport] = None,
        callbacks: Optional[QarmaCallbacks] = None, stdout=None, stdin_fd: int = 0) -> int:
    """Show the dialog described by ``invocation`` and return the exit code."""
    callbacks = callbacks if callbacks is not None else CLICallbacks.from_env()
    app = QCoreApplication.instance() or QCoreApplication([APP_ARGV0])
    signal.signal(signal.SIGINT, signal.SIG_DFL)
    if host is None:
        host = ConsoleHost.from_env(callbacks=callbacks)
    session = Session(invocation, host, transport, callbacks, stdout, stdin_fd)
    QTimer.singleShot(0, session.start)
    if invocation.general.timeout is not None:
        QTimer.singleShot(invocation.general.timeout * 1000, session.timeout)
    code = app.exec()
    StdinChannel.reset()
    return session.exit_code if session.exit_code is not None else code

