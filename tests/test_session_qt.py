import os, io, importlib.util
import pytest

spec = importlib.util.find_spec('PySide6')
if spec is None:
    pytest.skip('PySide6 not installed', allow_module_level=True)

os.environ.setdefault('QT_QPA_PLATFORM', 'offscreen')
from PySide6.QtCore import QCoreApplication

from qarma_core import parse_invocation
from qarma_host import ConsoleHost
from qarma_notify import NotificationTransport
from qarma_live import AppendText
from qarma_app import Session, StdinChannel, run


class Recorder:
    def __init__(self): self.warnings = []; self.logs = []; self.debugs = []
    def warn(self, m): self.warnings.append(m)
    def log(self, m): self.logs.append(m)
    def debug(self, m): self.debugs.append(m)


@pytest.fixture(scope='module')
def app():
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


def pipe_with(data: bytes, close: bool = True):
    r, w = os.pipe()
    if data:
        os.write(w, data)
    if close:
        os.close(w)
        w = None
    return r, w


def session(args, data=b'', close=True, host=None, transport=None):
    cb = Recorder()
    inv = parse_invocation(args, callbacks=cb, env={})
    host = host or ConsoleHost(stream=io.StringIO(), callbacks=cb)
    out = io.StringIO()
    r, w = pipe_with(data, close)
    try:
        rc = run(inv, host=host, transport=transport, callbacks=cb, stdout=out, stdin_fd=r)
    finally:
        os.close(r)
        if w is not None:
            os.close(w)
    return rc, out.getvalue(), host, cb


def test_progress_auto_close_accepts(app):
    rc, out, host, _ = session(['--progress', '--auto-close'], b'10\n50\n100\n')
    assert rc == 0 and out == ''

def test_progress_cancel_before_done_rejects(app):
    rc, out, _, _ = session(['--progress'], b'10\n50\n')
    assert rc == 1 and out == ''

def test_progress_done_then_ok(app):
    rc, _, host, _ = session(['--progress', '--cancel-label', 'Stop'], b'100\n')
    assert rc == 0 and host.cancel_label == 'Ok'

def test_progress_dropping_below_100_rejects_again(app):
    rc, _, host, _ = session(['--progress', '--cancel-label', 'Stop'], b'100\n30\n')
    assert rc == 1 and host.cancel_label == 'Stop'

def test_progress_starting_full_auto_closes(app):
    rc, out, _, _ = session(['--progress', '--auto-close', '--percentage', '100'], b'100\n')
    assert rc == 0 and out == ''

def test_pulsating_progress_accepts_at_end(app):
    rc, _, _, _ = session(['--progress', '--pulsate'], b'40\n')
    assert rc == 0

def test_progress_plain_mirror(app):
    buf = io.StringIO()
    host = ConsoleHost(progress_mode='plain', stream=buf)
    rc, _, _, _ = session(['--progress', '--auto-close'], b'25\n100\n', host=host)
    assert rc == 0
    assert '[progress] 25%' in buf.getvalue() and '[progress] 100%' in buf.getvalue()

def test_text_info_editable_prints_stream(app):
    rc, out, _, _ = session(['--text-info', '--editable'], b'hello\nworld')
    assert rc == 0 and out == 'hello\nworld\n'

def test_text_info_read_only_prints_nothing(app):
    rc, out, _, _ = session(['--text-info'], b'hello\n')
    assert rc == 0 and out == ''

def test_text_info_checkbox_unchecked_rejects(app):
    rc, out, _, _ = session(['--text-info', '--checkbox', 'I agree'], b'terms\n')
    assert rc == 1 and out == ''

def test_text_info_auto_scroll_finishes_after_animation(app):
    host = ConsoleHost(stream=io.StringIO(), viewport_rows=2)
    body = b''.join(b'line %d\n' % i for i in range(12))
    rc, out, host, _ = session(['--text-info', '--editable', '--auto-scroll'], body, host=host)
    assert rc == 0 and out == body.decode() + '\n'
    assert host.offset == host.max_scroll() > 0

def test_auto_scroll_reuses_one_animation(app):
    host = ConsoleHost(stream=io.StringIO(), viewport_rows=2)
    s = Session(parse_invocation(['--text-info', '--auto-scroll'], env={}), host)
    s.apply(AppendText('a\nb\nc\nd\n'))
    first = s.animation
    assert first is not None and s.text.animating
    first.stop()
    s._scroll_finished()
    assert host.offset == 3 and not s.text.animating
    s.apply(AppendText('e\nf\n'))
    assert s.animation is first and s.text.animating
    s._teardown()

def test_text_info_from_file(app, tmp_path):
    p = tmp_path / 'notes.txt'
    p.write_text('from file')
    rc, out, _, _ = session(['--text-info', '--editable', '--filename', str(p)])
    assert rc == 0 and out == 'from file\n'

def test_entry_answers_default(app):
    rc, out, _, _ = session(['--entry', '--entry-text', 'foo'])
    assert rc == 0 and out == 'foo\n'

def test_question_default_cancel_rejects(app):
    rc, out, _, _ = session(['--question', '--default-cancel'])
    assert rc == 1 and out == ''

def test_list_radiolist_prints_nothing_selected(app):
    rc, out, _, _ = session(['--list', '--radiolist', '--column', 'on', '--column', 'v', 'FALSE', 'a'])
    assert rc == 0 and out == '\n'

def test_scale_prints_value(app):
    rc, out, _, _ = session(['--scale', '--value', '30', '--max-value', '20'])
    assert rc == 0 and out == '20\n'

def test_forms_prints_defaults(app):
    rc, out, _, _ = session(['--forms', '--add-entry', 'Name', '--add-checkbox', 'ok', '--combo-values', 'a|b',
                             '--add-combo', 'pick', '--separator', ','])
    assert rc == 0 and out == ',false,a\n'

def test_file_selection_without_name_rejects(app):
    rc, out, _, _ = session(['--file-selection'])
    assert rc == 1 and out == ''

def test_file_selection_with_name(app):
    rc, out, _, _ = session(['--file-selection', '--filename', '/tmp/qarma.txt'])
    assert rc == 0 and out == '/tmp/qarma.txt\n'

def test_password_with_username(app):
    rc, out, _, _ = session(['--password', '--username'])
    assert rc == 0 and out == '|\n'

def test_color_selection(app):
    rc, out, _, _ = session(['--color-selection', '--color', 'blue'])
    assert rc == 0 and out == '#0000ff\n'

def test_notification_listen_fallback(app):
    rc, out, host, _ = session(['--notification', '--listen', '--text', 'start'], b'message: next\nvisible: false\n')
    assert rc == 0 and out == ''
    assert host.notifications == ['start', 'next'] and host.visible is False

def test_notification_with_system_service(app):
    class T(NotificationTransport):
        def __init__(self): self.bodies = []
        def available(self): return True
        def notify(self, app_name, replaces_id, icon, summary, body, actions, hints, timeout_ms):
            self.bodies.append((replaces_id, body)); return 11
    t = T()
    rc, _, host, cb = session(['--notification', '--listen'], b'message: one\nmessage: two\nvisible: true\n', transport=t)
    assert rc == 0 and t.bodies == [(0, 'one'), (11, 'two')]
    assert host.notifications == [] and len(cb.warnings) == 1

def test_timeout_exits_cleanly_without_output(app):
    rc, out, _, _ = session(['--progress', '--timeout', '1'], b'20\n', close=False)
    assert rc == 0 and out == ''

def test_zero_timeout_exits_right_away(app):
    rc, out, _, _ = session(['--progress', '--timeout', '0'], close=False)
    assert rc == 0 and out == ''

def test_stdin_channel_is_a_singleton(app):
    r, w = os.pipe()
    try:
        a = StdinChannel.open(lambda d: None, lambda: None, r)
        b = StdinChannel.open(lambda d: None, lambda: None, r)
        assert a is b and not a.closed
        a.close(); a.close()
        assert a.closed and a.notifier is None
    finally:
        StdinChannel.reset()
        os.close(r); os.close(w)
