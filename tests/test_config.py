"""Tests for ccdafold.config module."""

from ccdafold.config import (
    DEFAULT_CONFIG_TEMPLATE,
    generate_config,
    load_config,
    registry_from_config,
)
from ccdafold.executor import DEFAULT_CONVERTERS


class TestLoadConfig:
    def test_missing_file_returns_defaults(self, tmp_path, capsys):
        config = load_config(str(tmp_path / "nonexistent.toml"))
        assert config["conversion"]["patient_only"] is False
        assert config["conversion"]["disabled"] == []
        assert config["output"]["indent"] == 2
        assert "not found" in capsys.readouterr().err

    def test_loads_toml_file(self, tmp_path):
        toml_path = tmp_path / "test.toml"
        toml_path.write_text("""
[conversion]
patient_only = true
disabled = ["Procedure"]

[output]
indent = 4
""")
        config = load_config(str(toml_path))
        assert config["conversion"]["patient_only"] is True
        assert config["conversion"]["disabled"] == ["Procedure"]
        assert config["output"]["indent"] == 4

    def test_partial_sections_keep_defaults(self, tmp_path):
        toml_path = tmp_path / "test.toml"
        toml_path.write_text("[conversion]\nrecover_xml = true\n")
        config = load_config(str(toml_path))
        assert config["conversion"]["recover_xml"] is True
        assert config["conversion"]["patient_only"] is False
        assert config["output"]["indent"] == 2

    def test_unknown_sections_ignored(self, tmp_path):
        toml_path = tmp_path / "test.toml"
        toml_path.write_text("[other]\nvalue = 1\n")
        assert "other" not in load_config(str(toml_path))


class TestRegistryFromConfig:
    def test_defaults_keep_everything(self, tmp_path):
        config = load_config(str(generate_config(str(tmp_path / "c.toml"))))
        assert registry_from_config(config).keys() == list(DEFAULT_CONVERTERS)

    def test_disabled_keys_removed(self, tmp_path):
        toml_path = tmp_path / "test.toml"
        toml_path.write_text('[conversion]\ndisabled = ["Procedure", "Observation.vital-signs"]\n')
        registry = registry_from_config(load_config(str(toml_path)))
        assert "Procedure" not in registry
        assert "Observation.vital-signs" not in registry
        assert len(registry) == len(DEFAULT_CONVERTERS) - 2

    def test_unknown_key_warns(self, tmp_path, capsys):
        toml_path = tmp_path / "test.toml"
        toml_path.write_text('[conversion]\ndisabled = ["CarePlan"]\n')
        registry = registry_from_config(load_config(str(toml_path)))
        assert len(registry) == len(DEFAULT_CONVERTERS)
        assert "Unknown converter 'CarePlan'" in capsys.readouterr().err


class TestGenerateConfig:
    def test_writes_template(self, tmp_path):
        path = generate_config(str(tmp_path / "ccdafold.toml"))
        assert (tmp_path / "ccdafold.toml").read_text() == DEFAULT_CONFIG_TEMPLATE
        assert path.endswith("ccdafold.toml")

    def test_template_round_trips_to_defaults(self, tmp_path):
        path = generate_config(str(tmp_path / "ccdafold.toml"))
        config = load_config(path)
        assert config["conversion"] == {"patient_only": False, "recover_xml": False, "disabled": []}
        assert config["output"] == {"indent": 2}
