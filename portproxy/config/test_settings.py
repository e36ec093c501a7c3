from pathlib import Path

import pytest

from portproxy.config.settings import DEFAULT_MAPPINGS_FILE, Settings, load_settings


def test_defaults():
    settings = load_settings({})
    assert settings == Settings()
    assert settings.proxy_port == 3003
    assert settings.gui_port == 3004
    assert settings.mappings_file == DEFAULT_MAPPINGS_FILE
    assert settings.bind_host == "127.0.0.1"
    assert settings.probe_timeout == 2.0
    assert settings.verbose is False


def test_environment_overrides(tmp_path):
    settings = load_settings({
        "PORT": "8000",
        "GUI_PORT": "8001",
        "MAPPINGS_FILE": str(tmp_path / "routes.json"),
        "BACKEND_HOST": "127.0.0.1",
        "PROBE_TIMEOUT": "0.5",
    })
    assert settings.proxy_port == 8000
    assert settings.gui_port == 8001
    assert settings.mappings_file == tmp_path / "routes.json"
    assert settings.backend_host == "127.0.0.1"
    assert settings.probe_timeout == 0.5


@pytest.mark.parametrize("env, verbose", [
    ({"VERBOSE": "1"}, True),
    ({"DEBUG": "true"}, True),
    ({"VERBOSE": "0"}, False),
    ({"DEBUG": ""}, False),
])
def test_verbose_flag(env, verbose):
    assert load_settings(env).verbose is verbose


def test_reads_process_environment(monkeypatch):
    monkeypatch.setenv("PORT", "4444")
    assert load_settings().proxy_port == 4444


def test_override_ignores_none():
    settings = Settings().override(proxy_port=9999, gui_port=None, mappings_file=Path("/tmp/x.json"))
    assert settings.proxy_port == 9999
    assert settings.gui_port == 3004
    assert settings.mappings_file == Path("/tmp/x.json")
