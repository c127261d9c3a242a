from __future__ import annotations

import tomllib

import tomli_w
from result import Err, Ok

from tidyfs.config.defaults import default_config
from tidyfs.config.loader import default_config_path, load_config, sample_config_toml, save_config
from tidyfs.models.enums import RiskLevel, ScanMode
from tidyfs.services.env import Environment
from tests.fs_mock import MemoryFileSystem

ENV = Environment({"HOME": "/home/alice", "USER": "alice"})


def test_default_config_path_under_home() -> None:
    assert default_config_path(ENV) == "/home/alice/.config/tidyfs/config.toml"


def test_load_config_missing_writes_defaults() -> None:
    fs = MemoryFileSystem()
    result = load_config(path="/cfg/config.toml", fs=fs, env=ENV)

    assert isinstance(result, Ok)
    cfg = result.unwrap()
    assert cfg.categories
    assert fs.exists("/cfg/config.toml")
    written = tomllib.loads(fs.read_text("/cfg/config.toml"))
    assert written["scan"]["max_depth"] == cfg.scan.max_depth


def test_load_config_invalid_toml_returns_warning() -> None:
    fs = MemoryFileSystem().add_file("/config.toml", content="not = [valid")
    result = load_config(path="/config.toml", fs=fs, env=ENV)

    assert isinstance(result, Err)
    assert "failed reading config" in result.unwrap_err().lower()


def test_load_config_rejects_out_of_range_depth() -> None:
    fs = MemoryFileSystem().add_file("/config.toml", content=tomli_w.dumps({"scan": {"max_depth": 11}}))
    result = load_config(path="/config.toml", fs=fs, env=ENV)

    assert isinstance(result, Err)
    assert "max_depth must be between 1 and 10" in result.unwrap_err()


def test_load_config_rejects_zero_shred_passes() -> None:
    fs = MemoryFileSystem().add_file("/config.toml", content=tomli_w.dumps({"safety": {"shred_passes": 0}}))
    result = load_config(path="/config.toml", fs=fs, env=ENV)

    assert isinstance(result, Err)
    assert "shred_passes must be at least 1" in result.unwrap_err()


def test_load_config_rejects_duplicate_category_names() -> None:
    doc = {
        "categories": [
            {"name": "Cache", "paths": ["/a"]},
            {"name": "Cache", "paths": ["/b"]},
        ]
    }
    fs = MemoryFileSystem().add_file("/config.toml", content=tomli_w.dumps(doc))
    result = load_config(path="/config.toml", fs=fs, env=ENV)

    assert isinstance(result, Err)
    assert "duplicate category name" in result.unwrap_err()


def test_partial_config_merges_with_defaults() -> None:
    doc = {
        "scan": {"mode": "quick", "ignore_patterns": []},
        "safety": {"max_deletion_size_mb": 10},
        "categories": [
            {"name": "Logs", "paths": ["/var/log"], "filters": [r"\.log$"], "risk": "High", "min_age_days": 3},
        ],
    }
    fs = MemoryFileSystem().add_file("/config.toml", content=tomli_w.dumps(doc))
    result = load_config(path="/config.toml", fs=fs, env=ENV)

    assert isinstance(result, Ok)
    cfg = result.unwrap()
    assert cfg.scan.mode is ScanMode.QUICK
    assert cfg.scan.ignore_patterns == []
    assert cfg.scan.max_depth == 5
    assert cfg.safety.max_deletion_size_mb == 10
    assert cfg.safety.safe_mode is True
    assert "/var/lib" in cfg.safety.protected_paths
    [logs] = cfg.categories
    assert logs.risk is RiskLevel.HIGH
    assert logs.min_age_days == 3


def test_save_then_load_round_trip() -> None:
    fs = MemoryFileSystem()
    cfg = default_config(ENV)
    cfg.safety.shred_passes = 3

    saved = save_config(cfg, "/home/alice/.config/tidyfs/config.toml", fs=fs)
    assert isinstance(saved, Ok)

    loaded = load_config(path="/home/alice/.config/tidyfs/config.toml", fs=fs, env=ENV)
    assert isinstance(loaded, Ok)
    assert loaded.unwrap() == cfg


def test_sample_config_uses_real_home() -> None:
    text = sample_config_toml(ENV)
    doc = tomllib.loads(text)

    names = [c["name"] for c in doc["categories"]]
    assert "Thumbnails" in names
    assert any("/home/alice/.cache" in p for c in doc["categories"] for p in c["paths"])
