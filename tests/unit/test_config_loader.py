from pathlib import Path

import pytest

from aaisp_exporter.common.config_loader import load_config_file, resolve_config
from aaisp_exporter.common.errors import ConfigError


def test_resolve_config_defaults():
    config = resolve_config({"listen": None, "log_level": None, "log_output": None, "chaos_endpoint": None})

    assert config.listen == ":8080"
    assert config.log_level == "info"
    assert config.log_output == "json"
    assert config.chaos_endpoint == "https://chaos2.aa.net.uk"


def test_flags_override_file_values(tmp_path: Path):
    path = tmp_path / "exporter.yml"
    path.write_text("listen: 127.0.0.1:9000\nlog_level: debug\nlog_output: console\n", encoding="utf-8")

    config = resolve_config({"listen": ":9100", "log_level": None}, load_config_file(path))

    assert config.listen == ":9100"
    assert config.log_level == "debug"
    assert config.log_output == "console"


def test_empty_config_file_is_allowed(tmp_path: Path):
    path = tmp_path / "exporter.yml"
    path.write_text("", encoding="utf-8")

    assert load_config_file(path) == {}


@pytest.mark.parametrize(
    "text",
    [
        "- not\n- a\n- mapping\n",
        "listen: :8080\npassword: hunter2\n",
        "listen: 8080\n",
        "listen: [unclosed\n",
    ],
)
def test_invalid_config_files_raise(tmp_path: Path, text: str):
    path = tmp_path / "exporter.yml"
    path.write_text(text, encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config_file(path)


def test_missing_config_file_raises(tmp_path: Path):
    with pytest.raises(ConfigError):
        load_config_file(tmp_path / "absent.yml")


@pytest.mark.parametrize(
    ("overrides", "match"),
    [
        ({"log_output": "xml"}, "log_output"),
        ({"chaos_endpoint": "chaos2.aa.net.uk"}, "chaos_endpoint"),
    ],
)
def test_resolve_config_validates_values(overrides, match):
    with pytest.raises(ConfigError, match=match):
        resolve_config(overrides)

