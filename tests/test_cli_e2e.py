import os, sys, subprocess, importlib.util
import pytest

BASE = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
SCRIPT = os.path.join(BASE, 'qarma.py')
PY = sys.executable

needs_qt = pytest.mark.skipif(importlib.util.find_spec('PySide6') is None, reason='PySide6 not installed')


def run(args, stdin='', extra_env=None):
    env = os.environ.copy()
    env.pop('QARMA_CONFIG', None)
    env['QT_QPA_PLATFORM'] = 'offscreen'
    if extra_env:
        env.update(extra_env)
    return subprocess.run([PY, SCRIPT] + args, input=stdin, capture_output=True, text=True, env=env, timeout=60)


def test_help_exits_zero():
    r = run(['--help-list'])
    assert r.returncode == 0 and r.stdout.startswith('List options')

def test_no_arguments_prints_usage():
    r = run([])
    assert r.returncode == 0 and 'Usage:' in r.stdout

def test_version():
    r = run(['--version'])
    assert r.returncode == 0 and r.stdout.strip() == '1.0.0'

def test_bad_width_is_fatal():
    r = run(['--info', '--width', 'abc'])
    assert r.returncode == 1 and r.stdout == ''
    assert 'Error: --width must be followed by a positive number' in r.stderr

def test_bad_builder_number_is_fatal():
    r = run(['--scale', '--value=lots'])
    assert r.returncode == 1 and r.stdout == '' and '--value' in r.stderr

@needs_qt
def test_progress_auto_close_from_pipe():
    r = run(['--progress', '--auto-close'], stdin='10\n50\n100\n')
    assert r.returncode == 0 and r.stdout == ''

@needs_qt
def test_progress_cancelled_by_eof():
    r = run(['--progress'], stdin='10\n')
    assert r.returncode == 1

@needs_qt
def test_entry_prints_default_text():
    r = run(['--entry', '--entry-text=hello world'])
    assert r.returncode == 0 and r.stdout == 'hello world\n'

@needs_qt
def test_text_info_editable_echoes_stdin():
    r = run(['--text-info', '--editable'], stdin='a\nb\n')
    assert r.returncode == 0 and r.stdout == 'a\nb\n\n'

@needs_qt
def test_unknown_flag_warns_on_stderr_only():
    r = run(['--entry', '--entry-text', 'x', '--frobnicate'])
    assert r.returncode == 0 and r.stdout == 'x\n'
    assert '[warn] unspecific argument --frobnicate' in r.stderr

@needs_qt
def test_json_logs_on_stderr():
    r = run(['--entry', '--bogus'], extra_env={'QARMA_JSON_LOGS': '1'})
    assert r.returncode == 0
    assert '"event": "warn"' in r.stderr

@needs_qt
def test_plain_progress_mirror():
    r = run(['--progress', '--auto-close'], stdin='30\n100\n', extra_env={'QARMA_PROGRESS': 'plain'})
    assert r.returncode == 0 and '[progress] 30%' in r.stderr
