import io, json

from qarma_core import CLICallbacks, SCHEMA_VERSION, _invoke


def test_json_envelope_fields_and_sequence():
    buf = io.StringIO()
    cb = CLICallbacks(stream=buf, json_logs=True)
    cb.warn('first'); cb.log('second')
    events = [json.loads(l) for l in buf.getvalue().splitlines()]
    assert [e['event'] for e in events] == ['warn', 'log']
    assert [e['seq'] for e in events] == [1, 2]
    assert all(e['schema_version'] == SCHEMA_VERSION and e['run_id'] == cb.run_id and 'ts' in e for e in events)
    assert events[0]['message'] == 'first'

def test_plain_lines_and_debug_gate():
    buf = io.StringIO()
    cb = CLICallbacks(stream=buf)
    cb.warn('w'); cb.debug('hidden'); cb.log('plain')
    assert buf.getvalue() == '[warn] w\nplain\n'
    loud = CLICallbacks(stream=buf, debug=True)
    loud.debug('shown')
    assert buf.getvalue().endswith('[debug] shown\n')

def test_from_env_flags():
    cb = CLICallbacks.from_env({'QARMA_DEBUG': '1', 'QARMA_JSON_LOGS': 'off'}, stream=io.StringIO())
    assert cb.show_debug is True and cb.json_logs is False

def test_sink_failures_do_not_escape():
    class Broken:
        def warn(self, m): raise RuntimeError('sink down')
    _invoke(Broken(), 'warn', 'x')
    _invoke(None, 'warn', 'x')
    _invoke(object(), 'warn', 'x')
