"""
Ollama language-model provider.

Talks to a local Ollama server over HTTP. Chat responses are streamed as
NDJSON from ``/api/generate`` and republished as bus events.
"""

import asyncio
import json
from typing import Any, Dict, Optional

import aiohttp

from ...interfaces.language_model import LanguageModelInterface
from ...models.data_models import DoneEvent, StreamErrorEvent, TokenEvent
from ...utils.event_bus import DONE_EVENT, ERROR_EVENT, TOKEN_EVENT, EventBus
from ...utils.logging_config import get_logger


logger = get_logger("ollama")

DEFAULT_BASE_URL = "http://127.0.0.1:11434"
DEFAULT_MODEL = "llama3.1:8b"


class OllamaLanguageModelProvider(LanguageModelInterface):
    """Local Ollama implementation."""
    
    def __init__(self, config: Dict[str, Any]):
        """
        Initialize Ollama provider.
        
        Args:
            config: Configuration dictionary containing:
                - base_url: Ollama server URL
                - model: Default model name
                - system_prompt: Optional system prompt for chat
                - request_timeout: Total timeout per request in seconds
        """
        self.base_url = (config.get('base_url') or DEFAULT_BASE_URL).rstrip('/')
        self.model = config.get('model') or DEFAULT_MODEL
        self.system_prompt = config.get('system_prompt', '')
        self.request_timeout = float(config.get('request_timeout', 120))
        self.session: Optional[aiohttp.ClientSession] = None
    
    def _get_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            timeout = aiohttp.ClientTimeout(total=self.request_timeout)
            self.session = aiohttp.ClientSession(timeout=timeout)
        return self.session
    
    async def initialize(self) -> bool:
        """Check that the server answers and list installed models."""
        try:
            async with self._get_session().get(f"{self.base_url}/api/tags") as response:
                if response.status != 200:
                    logger.warning(f"Ollama tags request failed with status {response.status}")
                    return False
                payload = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Failed to connect to Ollama at {self.base_url}. Start Ollama first. {e}")
            return False
        
        installed = [m.get('name', '') for m in payload.get('models', []) if isinstance(m, dict)]
        if self.model not in installed:
            logger.warning(f"Model {self.model} is not installed in Ollama (found: {', '.join(installed) or 'none'})")
        else:
            logger.info(f"Ollama ready with {self.model}")
        return True
    
    def _generate_body(self, prompt: str, model: Optional[str], stream: bool) -> Dict[str, Any]:
        body = {
            "model": model or self.model,
            "prompt": prompt,
            "stream": stream,
        }
        if self.system_prompt and stream:
            body["system"] = self.system_prompt
        return body
    
    async def complete(self, prompt: str, model: Optional[str] = None) -> str:
        """
        Non-streamed generation.
        
        Raises:
            aiohttp.ClientError: on connection failures
            RuntimeError: on a non-200 response
        """
        body = self._generate_body(prompt, model, stream=False)
        async with self._get_session().post(f"{self.base_url}/api/generate", json=body) as response:
            if response.status != 200:
                text = await response.text()
                raise RuntimeError(f"Ollama request failed with status {response.status}. {text}")
            payload = await response.json()
        return str(payload.get('response', '')).strip()
    
    async def stream_chat(self,
                          session_id: str,
                          prompt: str,
                          bus: EventBus,
                          model: Optional[str] = None) -> None:
        body = self._generate_body(prompt, model, stream=True)
        try:
            async with self._get_session().post(f"{self.base_url}/api/generate", json=body) as response:
                if response.status != 200:
                    text = await response.text()
                    bus.publish(ERROR_EVENT, StreamErrorEvent(
                        session_id, f"Ollama request failed with status {response.status}. {text}".strip()
                    ))
                    return
                
                async for line in response.content:
                    line = line.strip()
                    if not line:
                        continue
                    data = json.loads(line)
                    if data.get('error'):
                        bus.publish(ERROR_EVENT, StreamErrorEvent(session_id, str(data['error'])))
                        return
                    chunk = data.get('response')
                    if chunk:
                        bus.publish(TOKEN_EVENT, TokenEvent(session_id, chunk))
                    if data.get('done'):
                        break
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            bus.publish(ERROR_EVENT, StreamErrorEvent(
                session_id, f"Failed to connect to Ollama at {self.base_url}. Start Ollama first. {e}"
            ))
            return
        except json.JSONDecodeError as e:
            bus.publish(ERROR_EVENT, StreamErrorEvent(session_id, f"Invalid Ollama stream chunk: {e}"))
            return
        
        bus.publish(DONE_EVENT, DoneEvent(session_id))
    
    async def cleanup(self) -> None:
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None
    
    @property
    def capabilities(self) -> dict:
        return {
            'streaming': True,
            'structured_output': True,
            'models': [self.model],
        }
