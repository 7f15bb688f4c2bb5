"""
Tests for configuration assembly, validated config models and the provider factory.
"""

import pytest
from pydantic import ValidationError

from overlay_assistant import config as core_config
from overlay_assistant import main as cli
from overlay_assistant.config_models import (
    ClassifierConfig,
    CoreConfig,
    LanguageModelConfig,
    MediaControlConfig,
)
from overlay_assistant.factory import ProviderFactory
from overlay_assistant.providers import (
    InMemoryHistorySink,
    JsonHistorySink,
    LocalSessionProvider,
    McpMediaControlClient,
    OllamaLanguageModelProvider,
    OpenAILanguageModelProvider,
)
from overlay_assistant.utils.device_affinity import FileDeviceAffinityStore, InMemoryDeviceAffinityStore


class TestConfigModule:

    def test_core_config_sections(self):
        config = core_config.get_core_config()

        for section in ("language_model", "media_control", "history", "session", "device_affinity"):
            assert "provider" in config[section]
            assert "config" in config[section]
        assert config["classifier"]["timeout_ms"] == 4500
        assert config["turn"]["unlock_delay_ms"] == 320

    def test_testing_preset_stays_in_memory(self):
        config = core_config.get_config_for_preset("test")

        assert config["history"]["provider"] == "memory"
        assert config["device_affinity"]["provider"] == "memory"
        assert config["session"]["config"] == {}

    def test_presets_adjust_logging(self):
        assert core_config.get_config_for_preset("dev")["logging"]["level"] == "DEBUG"
        assert core_config.get_config_for_preset("prod")["logging"]["use_colors"] is False

    def test_sections_are_copies(self):
        config = core_config.get_core_config()
        config["turn"]["unlock_delay_ms"] = 0

        assert core_config.TURN_CONFIG["unlock_delay_ms"] == 320

    def test_set_providers(self, monkeypatch):
        monkeypatch.setattr(core_config, "LANGUAGE_MODEL_PROVIDER", "ollama")

        core_config.set_providers(language_model="openai")

        assert core_config.get_core_config()["language_model"]["provider"] == "openai"


class TestConfigModels:

    def test_unknown_language_model_provider(self):
        with pytest.raises(ValidationError):
            LanguageModelConfig(provider="llamafile")

    def test_classifier_timeout_bounds(self):
        with pytest.raises(ValidationError):
            ClassifierConfig(timeout_ms=0)

    def test_media_server_root_required(self):
        with pytest.raises(ValidationError):
            MediaControlConfig()

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("OVERLAY_LLM_PROVIDER", "openai")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setenv("OVERLAY_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("OVERLAY_MEDIA_SERVER_ROOT", "/opt/spotify-mcp-server")
        monkeypatch.setenv("OVERLAY_CLASSIFIER_TIMEOUT_MS", "900")

        config = CoreConfig.from_env()

        assert config.language_model.provider == "openai"
        assert config.language_model.api_key == "sk-test"
        assert config.classifier.timeout_ms == 900
        assert config.media_control.server_root == "/opt/spotify-mcp-server"
        assert config.history.path == str(tmp_path / "chat_history.json")

    def test_legacy_dict_matches_factory_shape(self, monkeypatch, tmp_path):
        monkeypatch.setenv("OVERLAY_LLM_PROVIDER", "ollama")
        monkeypatch.setenv("OVERLAY_DATA_DIR", str(tmp_path))

        legacy = CoreConfig.from_env().to_legacy_dict()

        assert legacy["language_model"]["provider"] == "ollama"
        assert "api_key" not in legacy["language_model"]["config"]
        assert legacy["history"]["provider"] == "json"
        assert legacy["device_affinity"] == {
            "provider": "file",
            "config": {"path": str(tmp_path / "playback_device.json")},
        }
        assert legacy["visual"] == {"tick_ms": 70}

    @pytest.mark.parametrize("preset", ["default", "dev", "prod", "test"])
    def test_presets_validate(self, monkeypatch, preset):
        monkeypatch.setattr(core_config, "LANGUAGE_MODEL_PROVIDER", "ollama")

        config = CoreConfig.from_legacy_dict(core_config.get_config_for_preset(preset))

        assert config.classifier.timeout_ms > 0
        assert config.turn.tick_ms == 70

    def test_in_memory_storage_has_no_paths(self, monkeypatch):
        monkeypatch.setattr(core_config, "LANGUAGE_MODEL_PROVIDER", "ollama")

        config = CoreConfig.from_legacy_dict(core_config.get_config_for_preset("test"))

        assert config.history.path is None
        assert config.media_control.device_file is None

    def test_invalid_section_is_rejected(self, monkeypatch):
        monkeypatch.setattr(core_config, "LANGUAGE_MODEL_PROVIDER", "ollama")
        monkeypatch.setitem(core_config.CLASSIFIER_CONFIG, "timeout_ms", 0)

        with pytest.raises(ValidationError):
            CoreConfig.from_legacy_dict(core_config.get_core_config())

    def test_cli_refuses_invalid_config(self, monkeypatch):
        monkeypatch.setattr(core_config, "LANGUAGE_MODEL_PROVIDER", "ollama")
        monkeypatch.setattr(core_config, "CONFIG_PRESET", "default")
        monkeypatch.setitem(core_config.TURN_CONFIG, "unlock_delay_ms", -5)

        with pytest.raises(SystemExit, match="Invalid configuration"):
            cli._build_config("default", None, None)


class TestProviderFactory:

    def test_language_model_providers(self):
        assert isinstance(
            ProviderFactory.create_language_model_provider("ollama", {}),
            OllamaLanguageModelProvider,
        )
        assert isinstance(
            ProviderFactory.create_language_model_provider("openai", {"api_key": "sk-test"}),
            OpenAILanguageModelProvider,
        )

    def test_openai_requires_key(self):
        with pytest.raises(ValueError):
            ProviderFactory.create_language_model_provider("openai", {})

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unsupported history provider: sqlite"):
            ProviderFactory.create_history_provider("sqlite", {})

    def test_device_affinity_stores(self, tmp_path):
        assert isinstance(
            ProviderFactory.create_device_affinity_store("memory", {}),
            InMemoryDeviceAffinityStore,
        )
        assert isinstance(
            ProviderFactory.create_device_affinity_store("file", {"path": str(tmp_path / "d.json")}),
            FileDeviceAffinityStore,
        )

    def test_create_all_providers(self, tmp_path):
        config = core_config.get_config_for_preset("test")
        config["language_model"] = {"provider": "ollama", "config": {}}
        config["media_control"]["config"]["server_root"] = str(tmp_path)

        providers = ProviderFactory.create_all_providers(config)

        assert isinstance(providers["language_model"], OllamaLanguageModelProvider)
        assert isinstance(providers["media_control"], McpMediaControlClient)
        assert isinstance(providers["history"], InMemoryHistorySink)
        assert isinstance(providers["session"], LocalSessionProvider)
        assert isinstance(providers["device_affinity"], InMemoryDeviceAffinityStore)

    def test_json_history(self, tmp_path):
        sink = ProviderFactory.create_history_provider("json", {"path": str(tmp_path / "h.json")})
        assert isinstance(sink, JsonHistorySink)

    def test_available_providers(self):
        available = ProviderFactory.get_available_providers()

        assert available["language_model"] == ["ollama", "openai"]
        assert available["history"] == ["json", "memory"]
        assert set(available) == {"language_model", "media_control", "history", "session", "device_affinity"}
