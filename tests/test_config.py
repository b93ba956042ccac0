"""Tests for settings loading."""

from tagall.config import TagallSettings, load_settings


def test_defaults(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    settings = TagallSettings()
    assert settings.wacli_path == "wacli"
    assert settings.collaborator_timeout == 30.0
    assert settings.debug is False


def test_env_prefix(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    data_file = tmp_path / "data" / "tags.json"
    monkeypatch.setenv("TAGALL_DATA_FILE", str(data_file))
    monkeypatch.setenv("TAGALL_COLLABORATOR_TIMEOUT", "5")
    monkeypatch.setenv("TAGALL_DEBUG", "true")

    settings = load_settings()

    assert settings.data_file == str(data_file)
    assert settings.collaborator_timeout == 5.0
    assert settings.debug is True
    assert data_file.parent.is_dir()
