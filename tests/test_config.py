import pytest

from fragments.config import FragmentsConfig, load_config


def test_load_config_defaults(tmp_path):
    path = tmp_path / "config.yml"
    path.write_text("error_policy: inline", encoding="utf-8")

    cfg = load_config(path)

    assert isinstance(cfg, FragmentsConfig)
    assert cfg.error_policy == "inline"
    assert cfg.left_delim == "{{"
    assert cfg.right_delim == "}}"
    assert cfg.wrap_tag == "div"


def test_shipped_defaults_file():
    cfg = load_config("config/fragments.defaults.yml")

    assert cfg == FragmentsConfig()


def test_env_overrides(monkeypatch, tmp_path):
    source = tmp_path / "config.yml"
    source.write_text("markers:\n  left: '{{'\n  right: '}}'\n", encoding="utf-8")

    monkeypatch.setenv("FRAGMENTS_LEFT_DELIM", "[[")
    monkeypatch.setenv("FRAGMENTS_RIGHT_DELIM", "]]")
    monkeypatch.setenv("FRAGMENTS_WRAP_TAG", "section")
    monkeypatch.setenv("FRAGMENTS_LOG_LEVEL", "debug")

    cfg = load_config(source)

    assert cfg.left_delim == "[["
    assert cfg.right_delim == "]]"
    assert cfg.wrap_tag == "section"
    assert cfg.log_level == "DEBUG"
    assert cfg.parser().marker("a", "1") == "[[a:1]]"


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yml")


def test_invalid_error_policy(tmp_path):
    path = tmp_path / "config.yml"
    path.write_text("error_policy: shrug", encoding="utf-8")

    with pytest.raises(ValueError):
        load_config(path)
