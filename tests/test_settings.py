import pytest

from settings import DEFAULT_TEMPLATES_DIR, PROJECT_ROOT, load_settings


def test_defaults(monkeypatch):
    for name in ('VOCONV_DEFAULT_LYRIC', 'VOCONV_MAX_UPLOAD_BYTES', 'VOCONV_TEMPLATES_DIR', 'LOG_LEVEL'):
        monkeypatch.delenv(name, raising=False)
    settings = load_settings()
    assert settings.default_lyric == 'あ'
    assert settings.max_upload_bytes == 16 * 1024 * 1024
    assert settings.templates_dir == DEFAULT_TEMPLATES_DIR
    assert settings.log_level == 'INFO'


def test_environment_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv('VOCONV_DEFAULT_LYRIC', 'ら')
    monkeypatch.setenv('VOCONV_MAX_UPLOAD_BYTES', '1024')
    monkeypatch.setenv('VOCONV_TEMPLATES_DIR', str(tmp_path))
    monkeypatch.setenv('LOG_LEVEL', 'debug')
    settings = load_settings()
    assert settings.default_lyric == 'ら'
    assert settings.max_upload_bytes == 1024
    assert settings.templates_dir == tmp_path
    assert settings.log_level == 'DEBUG'


def test_relative_templates_dir_is_under_project_root(monkeypatch):
    monkeypatch.setenv('VOCONV_TEMPLATES_DIR', 'custom_templates')
    assert load_settings().templates_dir == PROJECT_ROOT / 'custom_templates'


def test_invalid_number(monkeypatch):
    monkeypatch.setenv('VOCONV_MAX_UPLOAD_BYTES', 'lots')
    with pytest.raises(ValueError):
        load_settings()
