"""
Tool invoker for the external media-control service.

Wraps ``MediaControlInterface.call_tool`` with output parsing, error
detection and a single automatic retry when the remembered playback device
has gone away.
"""

import json
import re
from typing import Any, Dict, Optional

from ..interfaces.media_control import MediaControlInterface
from ..models.data_models import ToolOutput
from ..utils.device_affinity import DeviceAffinityStore, InMemoryDeviceAffinityStore
from ..utils.error_handling import ToolInvocationError
from ..utils.logging_config import get_logger


logger = get_logger("tools")

EMPTY_OUTPUT_MESSAGE = "Media service returned empty output."
DEVICE_ARG = "deviceId"

_ERROR_PREFIX_RE = re.compile(r"^error\b", re.I)
_ERROR_WORDS_RE = re.compile(r"\b(failed|not found|missing|unauthorized|forbidden)\b", re.I)
_DEVICE_NOT_FOUND_RE = re.compile(r"\bdevice not found\b", re.I)


def text_signals_error(text: str) -> bool:
    """Keyword heuristic for error text in otherwise successful results."""
    return bool(_ERROR_PREFIX_RE.search(text) or _ERROR_WORDS_RE.search(text))


def parse_tool_output(raw: Optional[str]) -> ToolOutput:
    """
    Parse raw tool output into a ``ToolOutput``.

    JSON output contributes the text of its ``content`` blocks joined by blank
    lines. Anything that is not JSON passes through unchanged as a success.
    """
    trimmed = (raw or "").strip()
    if not trimmed:
        return ToolOutput(is_error=True, text=EMPTY_OUTPUT_MESSAGE)

    try:
        parsed = json.loads(trimmed)
    except json.JSONDecodeError:
        return ToolOutput(is_error=False, text=trimmed)

    if not isinstance(parsed, dict):
        return ToolOutput(is_error=False, text=trimmed)

    blocks = parsed.get("content")
    if not isinstance(blocks, list):
        blocks = []

    texts = []
    flagged = parsed.get("isError") is True
    for block in blocks:
        if not isinstance(block, dict):
            continue
        if block.get("isError") is True:
            flagged = True
        value = block.get("text")
        if isinstance(value, str) and value.strip():
            texts.append(value.strip())

    text = "\n\n".join(texts).strip()
    return ToolOutput(
        is_error=flagged or text_signals_error(text),
        text=text or trimmed,
    )


class ToolInvoker:
    """
    Issues control-tool calls with device-affinity recovery.

    On a "device not found" error for a call that carried a ``deviceId``, the
    affinity is cleared and the call is retried exactly once without it.
    """

    def __init__(self,
                 media: MediaControlInterface,
                 server_root: str,
                 affinity: Optional[DeviceAffinityStore] = None):
        self.media = media
        self.server_root = server_root
        self.affinity = affinity or InMemoryDeviceAffinityStore()
        self._service_ready = False

    async def _ensure_service(self) -> None:
        if self._service_ready:
            return
        await self.media.ensure_running(self.server_root)
        self._service_ready = True

    def reset_session(self) -> None:
        """Force ``ensure_running`` before the next call."""
        self._service_ready = False

    async def _call(self, tool_name: str, args: Dict[str, Any]) -> ToolOutput:
        raw = await self.media.call_tool(self.server_root, tool_name, args)
        output = parse_tool_output(raw)
        logger.debug(f"{tool_name} -> {'error' if output.is_error else 'ok'}: {output.text[:120]}")
        return output

    async def invoke(self, tool_name: str, args: Optional[Dict[str, Any]] = None) -> str:
        """
        Call one tool and return its text.

        Raises:
            ToolInvocationError: if the result signals an error after the
                optional device retry
            MediaServiceUnavailable: if the service cannot be started
        """
        args = dict(args or {})
        await self._ensure_service()

        output = await self._call(tool_name, args)
        device_id = args.get(DEVICE_ARG)
        device_id = device_id.strip() if isinstance(device_id, str) else ""
        retried = False

        if device_id and output.is_error and _DEVICE_NOT_FOUND_RE.search(output.text):
            logger.warning(f"Device {device_id} not found; retrying {tool_name} without it")
            self.affinity.clear()
            retry_args = {key: value for key, value in args.items() if key != DEVICE_ARG}
            output = await self._call(tool_name, retry_args)
            retried = True
            device_id = ""

        if output.is_error:
            raise ToolInvocationError(output.text, tool_name=tool_name, retried=retried)

        if device_id and self.affinity.get() != device_id:
            # A successful call on the device confirms it is still online
            self.affinity.set(device_id)
        return output.text

    async def invoke_with_affinity(self, tool_name: str, args: Optional[Dict[str, Any]] = None) -> str:
        """``invoke`` with the remembered device id attached, when there is one."""
        args = dict(args or {})
        device_id = self.affinity.get()
        if device_id and DEVICE_ARG not in args:
            args[DEVICE_ARG] = device_id
        return await self.invoke(tool_name, args)

    def notify_device_ready(self, device_id: str) -> None:
        if device_id and device_id.strip():
            logger.info(f"Playback device ready: {device_id.strip()}")
            self.affinity.set(device_id.strip())

    def notify_device_not_ready(self) -> None:
        logger.info("Playback device went away")
        self.affinity.clear()
