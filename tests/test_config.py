from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from devrelay.config import RelayConfig, load_config, save_config


def test_missing_file_yields_defaults(tmp_path: Path) -> None:
    cfg = load_config(tmp_path / "nope.yml")
    assert cfg == RelayConfig()
    assert cfg.command_timeout == 30.0
    assert cfg.command_max_age == 60.0
    assert (cfg.network_capacity, cfg.console_capacity, cfg.performance_capacity) == (5000, 5000, 500)
    assert not (tmp_path / "nope.yml").exists()


def test_invalid_values_fall_back(tmp_path: Path) -> None:
    path = tmp_path / "config.yml"
    path.write_text(
        "port: 99999\n"
        "command_timeout: -1\n"
        "console_capacity: 250\n"
        "network_capacity: true\n"
        "log_level: chatty\n"
        "unknown_key: 1\n",
        encoding="utf-8",
    )
    cfg = load_config(path)
    assert cfg.port == RelayConfig().port
    assert cfg.command_timeout == 30.0
    assert cfg.console_capacity == 250
    assert cfg.network_capacity == 5000
    assert cfg.log_level == "INFO"


def test_non_mapping_file_is_ignored(tmp_path: Path) -> None:
    path = tmp_path / "config.yml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    assert load_config(path) == RelayConfig()


def test_save_then_load(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "config.yml"
    save_config(RelayConfig(port=4000, command_timeout=5.0, log_level="DEBUG"), path)
    cfg = load_config(path)
    assert cfg.port == 4000
    assert cfg.command_timeout == 5.0
    assert cfg.log_level == "DEBUG"


def test_with_overrides_skips_none_and_validates() -> None:
    base = RelayConfig()
    assert base.with_overrides(host=None, port=None) is base
    cfg = base.with_overrides(port=8080, log_level="warning", command_timeout=0)
    assert cfg.port == 8080
    assert cfg.log_level == "WARNING"
    assert cfg.command_timeout == 30.0
