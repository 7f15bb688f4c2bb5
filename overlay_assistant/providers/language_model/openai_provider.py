"""
OpenAI chat-completions language-model provider.
"""

from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI, OpenAIError

from ...interfaces.language_model import LanguageModelInterface
from ...models.data_models import DoneEvent, StreamErrorEvent, TokenEvent
from ...utils.event_bus import DONE_EVENT, ERROR_EVENT, TOKEN_EVENT, EventBus
from ...utils.logging_config import get_logger


logger = get_logger("openai")


class OpenAILanguageModelProvider(LanguageModelInterface):
    """OpenAI implementation using ``AsyncOpenAI`` chat completions."""
    
    def __init__(self, config: Dict[str, Any]):
        """
        Args:
            config: Configuration dictionary containing:
                - api_key: OpenAI API key
                - model: Chat model
                - classifier_model: Model for structured output (defaults to model)
                - max_tokens: Maximum tokens for chat responses
                - temperature: Sampling temperature for chat
                - system_prompt: Optional system prompt
        """
        self.api_key = config.get('api_key')
        if not self.api_key:
            raise ValueError("OpenAI API key is required")
        
        self.model = config.get('model', 'gpt-4o-mini')
        self.classifier_model = config.get('classifier_model') or self.model
        self.max_tokens = config.get('max_tokens', 1000)
        self.temperature = config.get('temperature', 0.7)
        self.system_prompt = config.get('system_prompt', '')
        self.client: Optional[AsyncOpenAI] = None
    
    def _get_client(self) -> AsyncOpenAI:
        if self.client is None:
            self.client = AsyncOpenAI(api_key=self.api_key)
        return self.client
    
    def _messages(self, prompt: str, with_system: bool) -> List[Dict[str, str]]:
        messages = []
        if with_system and self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})
        messages.append({"role": "user", "content": prompt})
        return messages
    
    async def initialize(self) -> bool:
        try:
            self._get_client()
            return True
        except OpenAIError as e:
            logger.error(f"Failed to initialize OpenAI provider: {e}")
            return False
    
    async def complete(self, prompt: str, model: Optional[str] = None) -> str:
        response = await self._get_client().chat.completions.create(
            model=model or self.classifier_model,
            messages=self._messages(prompt, with_system=False),
            temperature=0,
        )
        if not response.choices:
            return ""
        return (response.choices[0].message.content or "").strip()
    
    async def stream_chat(self,
                          session_id: str,
                          prompt: str,
                          bus: EventBus,
                          model: Optional[str] = None) -> None:
        try:
            stream = await self._get_client().chat.completions.create(
                model=model or self.model,
                messages=self._messages(prompt, with_system=True),
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                stream=True,
            )
            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    bus.publish(TOKEN_EVENT, TokenEvent(session_id, delta))
        except OpenAIError as e:
            bus.publish(ERROR_EVENT, StreamErrorEvent(session_id, f"OpenAI request failed: {e}"))
            return
        
        bus.publish(DONE_EVENT, DoneEvent(session_id))
    
    async def cleanup(self) -> None:
        if self.client is not None:
            await self.client.close()
            self.client = None
    
    @property
    def capabilities(self) -> dict:
        return {
            'streaming': True,
            'structured_output': True,
            'max_tokens': self.max_tokens,
            'models': [self.model, self.classifier_model],
        }
