"""
MCP stdio client for the media-control service.

The service is a Node MCP server launched as ``node build/index.js`` from its
server root. Tool results are serialized back to JSON text so the tool
invoker can parse them uniformly.
"""

import asyncio
import os
from pathlib import Path
from typing import Any, Dict, Optional

from mcp.client.session import ClientSession
from mcp.client.stdio import StdioServerParameters, stdio_client

from ...interfaces.media_control import MediaControlInterface
from ...utils.error_handling import MediaServiceUnavailable, ToolInvocationError, retry_with_backoff
from ...utils.logging_config import get_logger


logger = get_logger("mcp")


class McpMediaControlClient(MediaControlInterface):
    """Keeps one stdio session to the media service per server root."""
    
    def __init__(self, config: Dict[str, Any]):
        """
        Args:
            config: Configuration dictionary containing:
                - command: Executable used to launch the server (default "node")
                - entry: Entry script relative to the server root
                - connect_attempts: Start-up attempts before giving up
                - connect_delay: Initial delay between attempts in seconds
        """
        self.command = config.get('command', 'node')
        self.entry = config.get('entry', 'build/index.js')
        self.connect_attempts = int(config.get('connect_attempts', 3))
        self.connect_delay = float(config.get('connect_delay', 1.0))
        
        self.mcp_session: Optional[ClientSession] = None
        self.stdio_client = None
        self.server_root: Optional[str] = None
        self.available_tools = []
        self._lock = asyncio.Lock()
    
    @property
    def is_connected(self) -> bool:
        return self.mcp_session is not None
    
    async def ensure_running(self, server_root: str) -> None:
        async with self._lock:
            if self.mcp_session is not None and self.server_root == server_root:
                return
            if self.mcp_session is not None:
                logger.info(f"Server root changed to {server_root}; reconnecting")
                await self._disconnect()
            
            entry_path = Path(server_root) / self.entry
            if not entry_path.exists():
                raise MediaServiceUnavailable(
                    f"Media service entry point not found: {entry_path}. Build the server first."
                )
            
            try:
                await retry_with_backoff(
                    lambda: self._connect(server_root, entry_path),
                    max_attempts=self.connect_attempts,
                    initial_delay=self.connect_delay,
                    component_name="mcp",
                )
            except Exception as e:
                raise MediaServiceUnavailable(f"Could not start media service: {e}") from e
    
    async def _connect(self, server_root: str, entry_path: Path) -> None:
        server_params = StdioServerParameters(
            command=self.command,
            args=[str(entry_path)],
            env=os.environ.copy(),
            cwd=server_root,
        )
        
        try:
            self.stdio_client = stdio_client(server_params)
            read, write = await self.stdio_client.__aenter__()
            self.mcp_session = ClientSession(read, write)
            await self.mcp_session.__aenter__()
            await self.mcp_session.initialize()
            
            tools = await self.mcp_session.list_tools()
            self.available_tools = [tool.name for tool in tools.tools]
        except Exception:
            await self._disconnect()
            raise
        
        self.server_root = server_root
        logger.info(f"Connected to media service ({len(self.available_tools)} tools)")
    
    async def call_tool(self, server_root: str, tool_name: str, args: Dict[str, Any]) -> str:
        await self.ensure_running(server_root)
        try:
            result = await self.mcp_session.call_tool(tool_name, args)
        except Exception as e:
            # The session is unusable after a transport failure
            await self._disconnect()
            raise ToolInvocationError(f"Error calling tool {tool_name}: {e}", tool_name=tool_name) from e
        return result.model_dump_json(by_alias=True, exclude_none=True)
    
    async def _disconnect(self) -> None:
        if self.mcp_session:
            try:
                await self.mcp_session.__aexit__(None, None, None)
            except Exception as e:
                logger.warning(f"MCP session cleanup error: {e}")
            finally:
                self.mcp_session = None
        
        if self.stdio_client:
            try:
                await self.stdio_client.__aexit__(None, None, None)
            except Exception as e:
                logger.warning(f"STDIO client cleanup error: {e}")
            finally:
                self.stdio_client = None
        self.server_root = None
    
    async def cleanup(self) -> None:
        async with self._lock:
            await self._disconnect()
