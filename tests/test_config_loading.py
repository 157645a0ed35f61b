import os, json, tempfile, shutil
import pytest

from qarma_core import load_general_defaults, parse_invocation, GeneralConfig, ConfigError


class Recorder:
    def __init__(self): self.warnings = []
    def warn(self, m): self.warnings.append(m)


@pytest.fixture
def tmpdir_path():
    d = tempfile.mkdtemp(prefix='qarma_cfg_')
    yield d
    shutil.rmtree(d, ignore_errors=True)


def write(path, text):
    with open(path, 'w', encoding='utf-8') as f: f.write(text)
    return path


def test_no_config_env_gives_plain_defaults():
    assert load_general_defaults({}) == GeneralConfig()

def test_missing_file_gives_plain_defaults(tmpdir_path):
    assert load_general_defaults({'QARMA_CONFIG': os.path.join(tmpdir_path, 'none.json')}) == GeneralConfig()

def test_json_defaults_and_cli_precedence(tmpdir_path):
    p = write(os.path.join(tmpdir_path, 'c.json'), json.dumps({'title': 'From file', 'width': 320, 'modal': True}))
    inv = parse_invocation(['--entry', '--title', 'CLI'], env={'QARMA_CONFIG': p})
    assert inv.general.title == 'CLI' and inv.general.width == 320 and inv.general.modal is True

def test_yaml_defaults(tmpdir_path):
    p = write(os.path.join(tmpdir_path, 'c.yaml'), 'cancel_label: Abort\ntimeout: 5\n')
    cfg = load_general_defaults({'QARMA_CONFIG': p})
    assert cfg.cancel_label == 'Abort' and cfg.timeout == 5

def test_bad_numeric_value_is_fatal(tmpdir_path):
    p = write(os.path.join(tmpdir_path, 'c.json'), json.dumps({'height': 'tall'}))
    with pytest.raises(ConfigError) as ei:
        load_general_defaults({'QARMA_CONFIG': p})
    assert '--height must be followed by a positive number' in str(ei.value) and p in str(ei.value)

def test_unknown_key_warns(tmpdir_path):
    cb = Recorder()
    p = write(os.path.join(tmpdir_path, 'c.json'), json.dumps({'colour': 'blue', 'title': 't'}))
    cfg = load_general_defaults({'QARMA_CONFIG': p}, cb)
    assert cfg.title == 't'
    assert any('colour' in w for w in cb.warnings)

def test_unparsable_file_warns_and_is_ignored(tmpdir_path):
    cb = Recorder()
    p = write(os.path.join(tmpdir_path, 'c.json'), '{not json')
    assert load_general_defaults({'QARMA_CONFIG': p}, cb) == GeneralConfig()
    assert len(cb.warnings) == 1

def test_non_mapping_file_is_ignored(tmpdir_path):
    p = write(os.path.join(tmpdir_path, 'c.yml'), '- a\n- b\n')
    assert load_general_defaults({'QARMA_CONFIG': p}) == GeneralConfig()
