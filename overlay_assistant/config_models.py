"""
Pydantic configuration models with validation.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, Dict, Any
import os


LANGUAGE_MODEL_PROVIDERS = ("ollama", "openai")


class LanguageModelConfig(BaseModel):
    """Chat and structured-output model configuration."""
    provider: str = Field("ollama", description="Provider name")
    model: str = Field("llama3.1:8b", description="Chat model")
    base_url: str = Field("http://127.0.0.1:11434", description="Ollama server URL")
    api_key: Optional[str] = Field(None, description="OpenAI API key")
    system_prompt: str = Field("", description="System prompt")
    request_timeout: float = Field(120.0, gt=0, description="Request timeout in seconds")

    @field_validator('provider')
    @classmethod
    def validate_provider(cls, v):
        if v not in LANGUAGE_MODEL_PROVIDERS:
            raise ValueError(f'Unknown language model provider. Must be one of: {list(LANGUAGE_MODEL_PROVIDERS)}')
        return v


class ClassifierConfig(BaseModel):
    """Model-assisted intent classifier configuration."""
    enabled: bool = Field(True, description="Race the model against the router")
    timeout_ms: int = Field(4500, gt=0, le=60000, description="Race timeout")
    model: Optional[str] = Field(None, description="Model override")


class MediaControlConfig(BaseModel):
    """Media-control service configuration."""
    server_root: str = Field(..., description="Directory the service runs from")
    command: str = Field("node", description="Launcher executable")
    entry: str = Field("build/index.js", description="Entry script relative to server_root")
    connect_attempts: int = Field(3, ge=1, le=10, description="Start-up attempts")
    connect_delay: float = Field(1.0, ge=0.0, description="Initial retry delay in seconds")
    device_file: Optional[str] = Field(None, description="Device affinity file; None keeps it in memory")


class HistoryConfig(BaseModel):
    """Chat history configuration."""
    path: Optional[str] = Field(None, description="History file; None keeps it in memory")
    limit: int = Field(120, ge=1, le=1000, description="Entries kept")


class TurnConfig(BaseModel):
    """Per-turn timing and visuals."""
    unlock_delay_ms: int = Field(320, ge=0, le=10000, description="Unlock delay after completion")
    history_preview: int = Field(8, ge=1, le=120, description="Entries shown by /history")
    tick_ms: int = Field(70, gt=0, description="Amplitude tick")
    submit_amplitude: float = Field(0.6, ge=0.0, le=1.0)
    response_amplitude: float = Field(0.74, ge=0.0, le=1.0)


class CoreConfig(BaseModel):
    """Complete orchestration core configuration."""
    language_model: LanguageModelConfig
    classifier: ClassifierConfig
    media_control: MediaControlConfig
    history: HistoryConfig
    turn: TurnConfig

    @classmethod
    def from_env(cls) -> 'CoreConfig':
        """Load configuration from environment variables."""
        provider = os.getenv('OVERLAY_LLM_PROVIDER', 'ollama')
        if provider == 'openai':
            model = os.getenv('OPENAI_MODEL', 'gpt-4o-mini')
        else:
            model = os.getenv('OLLAMA_MODEL', 'llama3.1:8b')

        data_dir = os.path.expanduser(os.getenv('OVERLAY_DATA_DIR', '~/.overlay_assistant'))
        return cls(
            language_model=LanguageModelConfig(
                provider=provider,
                model=model,
                base_url=os.getenv('OLLAMA_BASE_URL', 'http://127.0.0.1:11434'),
                api_key=os.getenv('OPENAI_API_KEY'),
            ),
            classifier=ClassifierConfig(
                timeout_ms=int(os.getenv('OVERLAY_CLASSIFIER_TIMEOUT_MS', '4500')),
                model=os.getenv('OVERLAY_CLASSIFIER_MODEL') or None,
            ),
            media_control=MediaControlConfig(
                server_root=os.getenv('OVERLAY_MEDIA_SERVER_ROOT', os.path.join(data_dir, 'spotify-mcp-server')),
                device_file=os.path.join(data_dir, 'playback_device.json'),
            ),
            history=HistoryConfig(path=os.path.join(data_dir, 'chat_history.json')),
            turn=TurnConfig(),
        )

    @classmethod
    def from_legacy_dict(cls, config: Dict[str, Any]) -> 'CoreConfig':
        """
        Validate a dictionary in the ``config.get_core_config`` format.

        Raises:
            pydantic.ValidationError: if any section holds an invalid value
        """
        lm = config['language_model']
        affinity = config.get('device_affinity', {})
        device_file = affinity.get('config', {}).get('path') if affinity.get('provider') == 'file' else None
        turn = dict(config.get('turn', {}))
        if 'tick_ms' in config.get('visual', {}):
            turn['tick_ms'] = config['visual']['tick_ms']

        return cls(
            language_model=LanguageModelConfig(provider=lm['provider'], **lm.get('config', {})),
            classifier=ClassifierConfig(**config.get('classifier', {})),
            media_control=MediaControlConfig(device_file=device_file, **config['media_control'].get('config', {})),
            history=HistoryConfig(**config['history'].get('config', {})),
            turn=TurnConfig(**turn),
        )

    def to_legacy_dict(self) -> Dict[str, Any]:
        """Convert to the dictionary format produced by ``config.get_core_config``."""
        lm = self.language_model.model_dump()
        provider = lm.pop('provider')
        if provider == 'ollama':
            lm.pop('api_key')
        else:
            lm.pop('base_url')

        media = self.media_control.model_dump()
        device_file = media.pop('device_file')
        history = self.history.model_dump()
        history_path = history.get('path')
        turn = self.turn.model_dump()

        return {
            'language_model': {
                'provider': provider,
                'config': lm
            },
            'media_control': {
                'provider': 'mcp',
                'config': media
            },
            'history': {
                'provider': 'json' if history_path else 'memory',
                'config': history if history_path else {'limit': history['limit']}
            },
            'session': {
                'provider': 'local',
                'config': {}
            },
            'device_affinity': {
                'provider': 'file' if device_file else 'memory',
                'config': {'path': device_file} if device_file else {}
            },
            'classifier': self.classifier.model_dump(),
            'turn': {
                'unlock_delay_ms': turn['unlock_delay_ms'],
                'history_preview': turn['history_preview'],
                'submit_amplitude': turn['submit_amplitude'],
                'response_amplitude': turn['response_amplitude'],
            },
            'visual': {
                'tick_ms': turn['tick_ms'],
            },
        }
