"""
Configuration for the overlay assistant orchestration core.
Organized into discrete feature sections for clarity.
"""

import os
from pathlib import Path
from typing import Dict, Any, Optional
from dotenv import load_dotenv


# =============================================================================
# SECTION 1: ENVIRONMENT & CREDENTIALS
# =============================================================================

# Load environment variables from the project root
parent_dir = Path(__file__).parent.parent
env_path = parent_dir / ".env"
if env_path.exists():
    load_dotenv(env_path)

DATA_DIR = Path(os.getenv("OVERLAY_DATA_DIR", "~/.overlay_assistant")).expanduser()


# =============================================================================
# SECTION 2: PROVIDER SELECTION
# =============================================================================
# Choose which provider implementation to use for each collaborator.

LANGUAGE_MODEL_PROVIDER = os.getenv("OVERLAY_LLM_PROVIDER", "ollama")  # Options: "ollama", "openai"
MEDIA_CONTROL_PROVIDER = "mcp"
HISTORY_PROVIDER = "json"          # Options: "json", "memory"
SESSION_PROVIDER = "local"
DEVICE_AFFINITY_PROVIDER = "file"  # Options: "file", "memory"


# =============================================================================
# SECTION 3: LANGUAGE MODEL CONFIGURATION
# =============================================================================

SYSTEM_PROMPT = (
    "You are Sarah, a concise desktop assistant. "
    "Answer directly in a few sentences unless asked for detail."
)

OLLAMA_CONFIG = {
    "base_url": os.getenv("OLLAMA_BASE_URL", "http://127.0.0.1:11434"),
    "model": os.getenv("OLLAMA_MODEL", "llama3.1:8b"),
    "system_prompt": SYSTEM_PROMPT,
    "request_timeout": 120,
}

OPENAI_CONFIG = {
    "api_key": os.getenv("OPENAI_API_KEY"),
    "model": os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
    "classifier_model": os.getenv("OPENAI_CLASSIFIER_MODEL"),
    "max_tokens": 1000,
    "temperature": 0.7,
    "system_prompt": SYSTEM_PROMPT,
}


# =============================================================================
# SECTION 4: AUDIO INTENT CLASSIFIER
# =============================================================================

CLASSIFIER_CONFIG = {
    "enabled": True,
    "timeout_ms": 4500,     # Router fallback after this
    "model": os.getenv("OVERLAY_CLASSIFIER_MODEL") or None,  # None = provider default
}


# =============================================================================
# SECTION 5: MEDIA CONTROL SERVICE (MCP)
# =============================================================================

def _detect_media_server_root() -> str:
    """Resolve the media service directory from the environment or known locations."""
    configured = os.getenv("OVERLAY_MEDIA_SERVER_ROOT")
    if configured:
        return str(Path(configured).expanduser())

    candidates = [
        parent_dir / "mcp" / "spotify-mcp-server",
        DATA_DIR / "spotify-mcp-server",
    ]
    for candidate in candidates:
        if (candidate / "build" / "index.js").exists():
            return str(candidate)
    return str(candidates[0])


MEDIA_SERVER_ROOT = _detect_media_server_root()

MEDIA_CONTROL_CONFIG = {
    "server_root": MEDIA_SERVER_ROOT,
    "command": os.getenv("OVERLAY_MEDIA_COMMAND", "node"),
    "entry": "build/index.js",
    "connect_attempts": 3,
    "connect_delay": 1.0,
}

DEVICE_AFFINITY_CONFIG = {
    "path": str(DATA_DIR / "playback_device.json"),
}


# =============================================================================
# SECTION 6: HISTORY & SESSION
# =============================================================================

HISTORY_CONFIG = {
    "path": str(DATA_DIR / "chat_history.json"),
    "limit": 120,
}

SESSION_CONFIG = {
    "path": str(DATA_DIR / "session.json"),
}


# =============================================================================
# SECTION 7: TURN FLOW & VISUALS
# =============================================================================

TURN_CONFIG = {
    "unlock_delay_ms": 320,      # Prompt unlock after a completed response
    "history_preview": 8,        # Entries shown by /history
    "submit_amplitude": 0.6,
    "response_amplitude": 0.74,
}

VISUAL_CONFIG = {
    "tick_ms": 70,
    "initial_amplitude": 0.09,
}


# =============================================================================
# SECTION 8: LOGGING
# =============================================================================

LOGGING_CONFIG = {
    "level": os.getenv("OVERLAY_LOG_LEVEL", "INFO"),
    "log_file": os.getenv("OVERLAY_LOG_FILE") or None,
    "use_colors": True,
    "use_emojis": True,
}


# =============================================================================
# SECTION 9: CORE ASSEMBLY
# =============================================================================

def _language_model_config(provider: str) -> Dict[str, Any]:
    if provider == "openai":
        return dict(OPENAI_CONFIG)
    return dict(OLLAMA_CONFIG)


def get_core_config() -> Dict[str, Any]:
    """
    Assemble the complete core configuration.

    Returns:
        Dictionary containing every provider configuration and turn setting
    """
    return {
        "language_model": {
            "provider": LANGUAGE_MODEL_PROVIDER,
            "config": _language_model_config(LANGUAGE_MODEL_PROVIDER)
        },
        "media_control": {
            "provider": MEDIA_CONTROL_PROVIDER,
            "config": dict(MEDIA_CONTROL_CONFIG)
        },
        "history": {
            "provider": HISTORY_PROVIDER,
            "config": dict(HISTORY_CONFIG)
        },
        "session": {
            "provider": SESSION_PROVIDER,
            "config": dict(SESSION_CONFIG)
        },
        "device_affinity": {
            "provider": DEVICE_AFFINITY_PROVIDER,
            "config": dict(DEVICE_AFFINITY_CONFIG)
        },
        "classifier": dict(CLASSIFIER_CONFIG),
        "turn": dict(TURN_CONFIG),
        "visual": dict(VISUAL_CONFIG),
        "logging": dict(LOGGING_CONFIG),
    }


# =============================================================================
# SECTION 10: ENVIRONMENT PRESETS
# =============================================================================

# Active preset: "default", "dev", "prod", "test"
CONFIG_PRESET: str = os.getenv("OVERLAY_PRESET", "dev")


def set_active_preset(preset: str) -> None:
    """Set the active configuration preset."""
    global CONFIG_PRESET
    CONFIG_PRESET = preset


def get_active_preset() -> str:
    """Get the current active configuration preset."""
    return CONFIG_PRESET


def get_development_config() -> Dict[str, Any]:
    """Get configuration optimized for development."""
    config = get_core_config()
    config["logging"]["level"] = "DEBUG"
    return config


def get_production_config() -> Dict[str, Any]:
    """Get configuration optimized for production."""
    config = get_core_config()
    config["logging"]["level"] = "WARNING"
    config["logging"]["use_colors"] = False
    return config


def get_testing_config() -> Dict[str, Any]:
    """Get configuration for testing: nothing touches the disk."""
    config = get_core_config()
    config["history"] = {"provider": "memory", "config": {"limit": 120}}
    config["device_affinity"] = {"provider": "memory", "config": {}}
    config["session"]["config"] = {}
    config["classifier"]["timeout_ms"] = 500
    config["turn"]["unlock_delay_ms"] = 10
    return config


def get_config_for_preset(preset: Optional[str] = None) -> Dict[str, Any]:
    """Return configuration based on preset name."""
    p = (preset or CONFIG_PRESET or "default").lower()
    if p in ("dev", "development"):
        return get_development_config()
    if p in ("prod", "production"):
        return get_production_config()
    if p in ("test", "testing"):
        return get_testing_config()
    return get_core_config()


# =============================================================================
# SECTION 11: RUNTIME PROVIDER SWITCHING
# =============================================================================

def set_providers(
    language_model: Optional[str] = None,
    media_control: Optional[str] = None,
    history: Optional[str] = None,
    session: Optional[str] = None,
    device_affinity: Optional[str] = None
):
    """Override provider selection at runtime."""
    global LANGUAGE_MODEL_PROVIDER, MEDIA_CONTROL_PROVIDER, HISTORY_PROVIDER
    global SESSION_PROVIDER, DEVICE_AFFINITY_PROVIDER

    if language_model:
        LANGUAGE_MODEL_PROVIDER = language_model
    if media_control:
        MEDIA_CONTROL_PROVIDER = media_control
    if history:
        HISTORY_PROVIDER = history
    if session:
        SESSION_PROVIDER = session
    if device_affinity:
        DEVICE_AFFINITY_PROVIDER = device_affinity


# =============================================================================
# SECTION 12: VALIDATION & DIAGNOSTICS
# =============================================================================

def validate_environment() -> Dict[str, Any]:
    """Validate the environment and configuration."""
    results = {"valid": True, "errors": [], "warnings": [], "info": []}

    if LANGUAGE_MODEL_PROVIDER == "openai" and not OPENAI_CONFIG.get("api_key"):
        results["errors"].append("Missing required: OPENAI_API_KEY")
        results["valid"] = False
    elif LANGUAGE_MODEL_PROVIDER == "ollama":
        results["info"].append(f"Ollama: {OLLAMA_CONFIG['base_url']} ({OLLAMA_CONFIG['model']})")

    entry = Path(MEDIA_SERVER_ROOT) / MEDIA_CONTROL_CONFIG["entry"]
    if not entry.exists():
        results["warnings"].append(f"Media service not built: {entry} (control commands will fail)")
    else:
        results["info"].append(f"Media service: {MEDIA_SERVER_ROOT}")

    results["info"].append(f"Data directory: {DATA_DIR}")
    return results


def print_config_summary():
    """Print a summary of the current configuration."""
    print("=" * 60)
    print("🔧 Overlay Assistant Configuration")
    print("=" * 60)

    print(f"Preset: {get_active_preset()}")
    print(f"Language model: {LANGUAGE_MODEL_PROVIDER}")
    print(f"Media control: {MEDIA_CONTROL_PROVIDER}")
    print(f"History: {HISTORY_PROVIDER}")
    print(f"Classifier timeout: {CLASSIFIER_CONFIG['timeout_ms']}ms")
    print()

    validation = validate_environment()
    if validation["valid"]:
        print("✅ Configuration Valid")
    else:
        print("❌ Configuration Issues:")
        for error in validation["errors"]:
            print(f"  - {error}")

    if validation["warnings"]:
        print("\n⚠️  Warnings:")
        for warning in validation["warnings"]:
            print(f"  - {warning}")

    for info in validation["info"]:
        print(f"ℹ️  {info}")

    print("=" * 60)
