"""
Model-assisted audio intent classifier.

Asks the language model for a JSON-only decision object and races the reply
against a timer. Whichever settles first is observed; the other is ignored.
The model call is never cancelled at the transport level, its late result is
simply dropped.
"""

import asyncio
import json
from typing import Any, Dict, Optional, Set

from pydantic import ValidationError

from ..interfaces.language_model import LanguageModelInterface
from ..models.audio import AudioDecision, AudioIntent, decision_from_intent, validate_decision
from ..utils.error_handling import (
    ClassificationParseError,
    ClassificationTimeout,
    ComponentError,
    ErrorHandler,
    ErrorSeverity,
)
from ..utils.logging_config import get_logger


logger = get_logger("classifier")

DEFAULT_TIMEOUT_MS = 4500

CLASSIFIER_INSTRUCTIONS = """You control a music player. Classify the user's request.
Reply with ONE JSON object and nothing else. No prose, no markdown.

Allowed shapes:
{"action": "play", "searchQuery": "<what to search, optional>", "mediaType": "track|album|artist|playlist"}
{"action": "queue", "searchQuery": "<what to add>", "mediaType": "track"}
{"action": "volumeSet", "value": <0-100>}
{"action": "volumeAdjust", "adjustment": <signed integer, e.g. 10 or -10>}
{"action": "pause"} | {"action": "stop"} | {"action": "next"} | {"action": "prev"}
{"action": "none"}   (the request is not about music playback)

Omit searchQuery to resume whatever was playing."""


def build_prompt(text: str, hint: Optional[AudioIntent] = None) -> str:
    """Assemble the structured-output prompt for one utterance."""
    parts = [CLASSIFIER_INSTRUCTIONS]
    if hint is not None:
        parts.append(f"A keyword matcher suggested: {json.dumps(decision_from_intent(hint).to_payload())}")
    parts.append(f"User request: {text.strip()}")
    parts.append("JSON:")
    return "\n\n".join(parts)


def extract_json_object(raw: str) -> Optional[str]:
    """
    Return the first balanced ``{...}`` block in ``raw``.

    Braces inside string literals are ignored, so a search query such as
    ``"{live}"`` does not end the object early.
    """
    if not raw:
        return None

    start = raw.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(raw)):
            char = raw[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue

            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return raw[start:index + 1]
        # Unbalanced from this brace; try the next one
        start = raw.find("{", start + 1)
    return None


def decode_decision(raw: str) -> AudioDecision:
    """
    Decode a model reply into a decision.

    Raises:
        ClassificationParseError: if no valid decision object is present
    """
    block = extract_json_object(raw)
    if block is None:
        raise ClassificationParseError("No JSON object in classifier reply")

    try:
        payload: Dict[str, Any] = json.loads(block)
    except json.JSONDecodeError as e:
        raise ClassificationParseError(f"Malformed JSON in classifier reply: {e}") from e

    if not isinstance(payload, dict):
        raise ClassificationParseError("Classifier reply is not a JSON object")

    try:
        return validate_decision(payload)
    except (ValidationError, ValueError, TypeError, OverflowError) as e:
        raise ClassificationParseError(f"Invalid decision object: {e}") from e


def parse_decision(raw: str) -> Optional[AudioDecision]:
    """Lenient form of ``decode_decision``: failures are logged and yield None."""
    try:
        return decode_decision(raw)
    except ClassificationParseError as e:
        logger.warning(str(e))
        return None


def resolve_decision(model_decision: Optional[AudioDecision],
                     intent: Optional[AudioIntent]) -> Optional[AudioDecision]:
    """
    Merge the model result with the router intent.

    The model result wins wholesale when present. Otherwise the router intent
    is mapped structurally. Fields are never mixed between the two.
    """
    if model_decision is not None:
        return model_decision
    if intent is not None:
        return decision_from_intent(intent)
    return None


class IntentClassifier:
    """Races a structured-output model call against a timeout."""

    def __init__(self,
                 language_model: LanguageModelInterface,
                 timeout_ms: int = DEFAULT_TIMEOUT_MS,
                 model: Optional[str] = None,
                 error_handler: Optional[ErrorHandler] = None):
        self.language_model = language_model
        self.timeout_ms = timeout_ms
        self.model = model
        self.error_handler = error_handler
        self._stragglers: Set[asyncio.Task] = set()

    def _record(self, error: Exception) -> None:
        logger.warning(str(error))
        if self.error_handler:
            self.error_handler.handle_error(ComponentError(
                component="classifier",
                severity=ErrorSeverity.WARNING,
                message=str(error),
                exception=error,
            ))

    async def classify(self,
                       text: str,
                       timeout_ms: Optional[int] = None,
                       hint: Optional[AudioIntent] = None) -> Optional[AudioDecision]:
        """
        Ask the model for a decision.

        Args:
            text: User utterance
            timeout_ms: Override for the race timer
            hint: Router intent included in the prompt as a suggestion

        Returns:
            The parsed decision, or None on timeout, parse failure or
            transport failure
        """
        timeout = (timeout_ms if timeout_ms is not None else self.timeout_ms) / 1000
        prompt = build_prompt(text, hint)
        loop = asyncio.get_running_loop()
        outcome: asyncio.Future = loop.create_future()
        settled = False

        def settle(result: Optional[AudioDecision], source: str) -> bool:
            nonlocal settled
            if settled:
                return False
            settled = True
            logger.debug(f"Classifier race settled by {source}")
            if not outcome.done():
                outcome.set_result(result)
            return True

        async def run_model():
            try:
                raw = await self.language_model.complete(prompt, model=self.model)
            except Exception as e:
                result = None
                if not settled:
                    self._record(ClassificationParseError(f"Classifier request failed: {e}"))
            else:
                try:
                    result = decode_decision(raw)
                except ClassificationParseError as e:
                    result = None
                    if not settled:
                        self._record(e)
            if not settle(result, "model"):
                logger.debug("Late classifier reply ignored")

        async def run_timer():
            await asyncio.sleep(timeout)
            if settle(None, "timer"):
                self._record(ClassificationTimeout(
                    f"Classifier did not answer within {int(timeout * 1000)}ms"
                ))

        model_task = asyncio.create_task(run_model())
        self._stragglers.add(model_task)
        model_task.add_done_callback(self._stragglers.discard)
        timer_task = asyncio.create_task(run_timer())

        try:
            return await outcome
        finally:
            if not timer_task.done():
                timer_task.cancel()

    async def shutdown(self) -> None:
        """Cancel model calls still running after their race was lost."""
        for task in list(self._stragglers):
            task.cancel()
        if self._stragglers:
            await asyncio.gather(*self._stragglers, return_exceptions=True)
        self._stragglers.clear()
