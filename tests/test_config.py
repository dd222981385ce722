"""
tests/test_config.py — YAML Configuration Loader
=================================================
"""

from __future__ import annotations

import pytest

from quizmize.config import config_path, default_config, load_config


class TestLoadConfig:
    def test_reads_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "site_name: Test Site\n"
            "site_tagline: Testing\n"
            "port: 9000\n"
            "cookie_secure: true\n"
            "leveling:\n"
            "  group:\n"
            "    base: 100\n"
            "    step: 10\n",
            encoding="utf-8",
        )
        cfg = load_config(path)
        assert cfg.site_name == "Test Site"
        assert cfg.port == 9000
        assert cfg.cookie_secure is True
        assert cfg.group_policy.required_xp(1) == 110
        # account curve untouched
        assert cfg.account_policy.required_xp(1) == 2000

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_missing_required_key(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("site_name: X\n", encoding="utf-8")
        with pytest.raises(KeyError):
            load_config(path)

    def test_env_override_of_path(self, monkeypatch, tmp_path):
        monkeypatch.setenv("QUIZMIZE_CONFIG", str(tmp_path / "custom.yaml"))
        assert config_path() == tmp_path / "custom.yaml"

    def test_defaults(self):
        cfg = default_config()
        assert cfg.site_name == "Quizmize"
        assert cfg.cookie_secure is False
        assert cfg.group_policy.required_xp(1) == 3000
