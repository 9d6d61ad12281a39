import os

import pytest

from image_build.foundation.config_io import find_project_root, load_config
from image_build.framework.config import BuildConfig, parse_bool, parse_int


def _project(tmp_path):
    root = tmp_path / "repo"
    module_dir = root / "images" / "base" / "demo"
    module_dir.mkdir(parents=True)
    (root / ".shared").mkdir()
    return root, module_dir


def test_project_root_found_from_shared_dir(tmp_path):
    root, module_dir = _project(tmp_path)
    assert find_project_root(module_dir) == root.resolve()


def test_load_config_defaults_when_no_files(tmp_path, monkeypatch):
    monkeypatch.delenv("IMAGE_BUILD_CONFIG", raising=False)
    _root, module_dir = _project(tmp_path)

    cfg, meta = load_config(module_dir)

    assert cfg == {}
    assert meta["mode"] == "defaults"
    assert meta["paths"] == []


def test_module_config_overlays_project_config(tmp_path, monkeypatch):
    monkeypatch.delenv("IMAGE_BUILD_CONFIG", raising=False)
    root, module_dir = _project(tmp_path)
    (root / "build.yaml").write_text(
        "registry: ghcr.io/acme\nparams:\n  arch: amd64\n  variant: slim\n", encoding="utf-8"
    )
    (module_dir / "module.yaml").write_text("params:\n  variant: full\n", encoding="utf-8")

    cfg, meta = load_config(module_dir)

    assert cfg == {"registry": "ghcr.io/acme", "params": {"arch": "amd64", "variant": "full"}}
    assert meta["mode"] == "project+module"
    assert len(meta["paths"]) == 2


def test_env_var_selects_a_single_file(tmp_path, monkeypatch):
    _root, module_dir = _project(tmp_path)
    (module_dir / "module.yaml").write_text("registry: ignored\n", encoding="utf-8")
    explicit = tmp_path / "ci.yaml"
    explicit.write_text("registry: ci.example\n", encoding="utf-8")
    monkeypatch.setenv("IMAGE_BUILD_CONFIG", str(explicit))

    cfg, meta = load_config(module_dir)

    assert cfg == {"registry": "ci.example"}
    assert meta["mode"] == "env"
    assert os.path.basename(meta["paths"][0]) == "ci.yaml"


def test_overlay_type_mismatch_raises(tmp_path, monkeypatch):
    monkeypatch.delenv("IMAGE_BUILD_CONFIG", raising=False)
    root, module_dir = _project(tmp_path)
    (root / "build.yaml").write_text("params:\n  arch: amd64\n", encoding="utf-8")
    (module_dir / "module.yaml").write_text("params: [1, 2]\n", encoding="utf-8")

    with pytest.raises(ValueError, match=r"module.yaml: params is list but the project config has dict"):
        load_config(module_dir)


def test_module_config_null_drops_a_project_value(tmp_path, monkeypatch):
    monkeypatch.delenv("IMAGE_BUILD_CONFIG", raising=False)
    root, module_dir = _project(tmp_path)
    (root / "build.yaml").write_text("registry: ghcr.io/acme\nparams:\n  arch: amd64\n", encoding="utf-8")
    (module_dir / "module.yaml").write_text("registry: null\nparams:\n  arch: null\n", encoding="utf-8")

    cfg, _meta = load_config(module_dir)

    assert cfg == {"params": {}}


def test_missing_env_config_file_is_a_value_error(tmp_path, monkeypatch):
    monkeypatch.setenv("IMAGE_BUILD_CONFIG", str(tmp_path / "absent.yaml"))
    _root, module_dir = _project(tmp_path)

    with pytest.raises(ValueError, match=r"Config file not found"):
        load_config(module_dir)


def test_non_mapping_document_raises(tmp_path, monkeypatch):
    monkeypatch.delenv("IMAGE_BUILD_CONFIG", raising=False)
    root, module_dir = _project(tmp_path)
    (root / "build.yaml").write_text("- a\n- b\n", encoding="utf-8")

    with pytest.raises(ValueError, match=r"must contain a YAML mapping"):
        load_config(module_dir)


def test_build_config_defaults():
    cfg, warnings = BuildConfig.from_dict({})

    assert warnings == []
    assert cfg.build_dir == "build"
    assert cfg.test_dir == "test"
    assert cfg.command_timeout_seconds == 600
    assert cfg.junit_report is True
    assert cfg.log_to_file is True


def test_build_config_parses_typed_values():
    cfg, _ = BuildConfig.from_dict(
        {
            "paths": {"build_dir": "out", "test_dir": "checks"},
            "extensions": {"search_paths": [".shared/ext"], "test_search_paths": ".shared/test-ext"},
            "timeouts": {"command_seconds": "30"},
            "test": {"keep_files": "yes", "junit": False},
            "logging": {"file": "false"},
            "params": {"arch": "arm64", "retries": 3},
        }
    )

    assert cfg.build_dir == "out"
    assert cfg.test_dir == "checks"
    assert cfg.extension_search_paths == (".shared/ext",)
    assert cfg.test_extension_search_paths == (".shared/test-ext",)
    assert cfg.command_timeout_seconds == 30
    assert cfg.keep_test_files is True
    assert cfg.junit_report is False
    assert cfg.log_to_file is False
    assert cfg.default_params == {"arch": "arm64", "retries": "3"}


def test_unknown_config_keys_warn_by_default():
    _cfg, warnings = BuildConfig.from_dict({"paths": {"bogus": 1}, "extra": True})

    assert "Unknown config key: extra" in warnings
    assert "Unknown config key: paths.bogus" in warnings


def test_unknown_config_keys_strict_mode_raises():
    with pytest.raises(ValueError, match=r"Unknown config keys: paths\.bogus"):
        BuildConfig.from_dict({"strict": True, "paths": {"bogus": 1}})


def test_non_positive_timeout_rejected():
    with pytest.raises(ValueError, match=r"timeouts.command_seconds must be > 0"):
        BuildConfig.from_dict({"timeouts": {"command_seconds": 0}})


@pytest.mark.parametrize("value", ["maybe", 2, None, 1.5])
def test_parse_bool_rejects_ambiguous_values(value):
    with pytest.raises(ValueError, match=r"Invalid boolean for test\.keep_files"):
        parse_bool(value, "test.keep_files")


def test_parse_int_rejects_bool():
    with pytest.raises(ValueError, match=r"expected int, got bool"):
        parse_int(True, "timeouts.command_seconds")
