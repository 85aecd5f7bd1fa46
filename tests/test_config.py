from pathlib import Path

from shareio.config import Config, ENV_VARS, load_config


def test_defaults():
    config = Config()

    assert config.code_min == 49152
    assert config.code_max == 65535
    assert config.accept_timeout is None
    assert config.evict_after_serve is True


def test_from_env(monkeypatch):
    monkeypatch.setenv('SHAREIO_API_PORT', '9000')
    monkeypatch.setenv('SHAREIO_CODE_MIN', '50000')
    monkeypatch.setenv('SHAREIO_UPLOAD_DIR', '/srv/shares')
    monkeypatch.setenv('SHAREIO_ACCEPT_TIMEOUT', '120')
    monkeypatch.setenv('SHAREIO_EVICT_AFTER_SERVE', 'false')
    monkeypatch.setenv('SHAREIO_CORS_ORIGINS', 'http://a.test, http://b.test')

    config = Config.from_env()

    assert config.api_port == 9000
    assert config.code_min == 50000
    assert config.upload_dir == Path('/srv/shares')
    assert config.accept_timeout == 120.0
    assert config.evict_after_serve is False
    assert config.cors_origins == ['http://a.test', 'http://b.test']


def test_save_and_load_file(tmp_path):
    path = tmp_path / 'config.json'
    original = Config(api_port=9100, code_min=51000, code_max=52000, accept_timeout=30.0)
    original.save(path)

    loaded = Config.from_file(path)

    assert loaded.to_dict() == original.to_dict()


def test_missing_file_gives_defaults(tmp_path):
    assert Config.from_file(tmp_path / 'nope.json').to_dict() == Config().to_dict()


def test_env_overrides_file(tmp_path, monkeypatch):
    path = tmp_path / 'config.json'
    Config(api_port=9100, log_level='DEBUG').save(path)
    monkeypatch.setenv('SHAREIO_API_PORT', '9200')

    config = load_config(path)

    assert config.api_port == 9200
    assert config.log_level == 'DEBUG'


def test_env_matching_default_still_overrides_file(tmp_path, monkeypatch):
    path = tmp_path / 'config.json'
    Config(api_port=9000, evict_after_serve=False).save(path)
    monkeypatch.setenv('SHAREIO_API_PORT', '8080')
    monkeypatch.setenv('SHAREIO_EVICT_AFTER_SERVE', 'true')

    config = load_config(path)

    assert config.api_port == 8080
    assert config.evict_after_serve is True


def test_unset_env_keeps_file_values(tmp_path, monkeypatch):
    path = tmp_path / 'config.json'
    Config(api_port=9000, evict_after_serve=False, cors_origins=['http://a.test']).save(path)
    for var in ENV_VARS.values():
        monkeypatch.delenv(var, raising=False)

    config = load_config(path)

    assert config.api_port == 9000
    assert config.evict_after_serve is False
    assert config.cors_origins == ['http://a.test']
