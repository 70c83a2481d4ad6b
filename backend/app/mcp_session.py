"""
MCP Browser Session

One persistent connection to a browser-automation tool server spoken to over
the Model Context Protocol (stdio transport). Every browser interaction is a
tool call; this module gives those calls a uniform shape and a single
best-effort policy for the calls whose failure must not matter.
"""

import base64
import json
import logging
import re
from contextlib import AsyncExitStack
from typing import Any, Awaitable, Callable, Dict, List, Optional

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client

from page_helpers import HELPERS_SCRIPT, PAGE_MARKUP_EXPR
from scenario_errors import ToolCallError

# Configure logging
logger = logging.getLogger(__name__)


RESULT_SECTION = re.compile(r'^###\s*Result\s*\n(.*?)(?:\n###|\Z)', re.DOTALL)


def _field(item: Any, name: str, default=None):
    """Read a field from an MCP content object or its dict form"""
    if isinstance(item, dict):
        return item.get(name, default)
    return getattr(item, name, default)


def _parse_text(text: str) -> Any:
    section = RESULT_SECTION.search(text.strip())
    if section:
        text = section.group(1).strip()
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        return text


def pick_value(contents: List[Any], structured: Any = None) -> Any:
    """
    Extract a value from a tool response.

    Prefers a structured payload, then the first json item, then the first
    text item parsed as JSON, then the raw text. Returns None when the
    response carries none of these.
    """
    if structured is not None:
        return structured
    for item in contents or []:
        if _field(item, 'type') == 'json' and _field(item, 'json') is not None:
            return _field(item, 'json')
    for item in contents or []:
        if _field(item, 'type') == 'text' and _field(item, 'text') is not None:
            return _parse_text(_field(item, 'text'))
    return None


def as_bool(value: Any) -> bool:
    """Coerce an evaluate() result into a boolean"""
    if value is True or value is False:
        return value
    if isinstance(value, str):
        s = value.strip().lower()
        if s in ('true', '1'):
            return True
        if s in ('false', '0', ''):
            return False
    if isinstance(value, (int, float)):
        return value != 0
    return bool(value)


def _error_text(contents: List[Any]) -> str:
    texts = [_field(item, 'text') for item in contents or [] if _field(item, 'type') == 'text']
    return ' '.join(t for t in texts if t) or 'tool reported an error'


class McpBrowserSession:
    """
    Shared session with the browser-automation tool server.

    Features:
    - Uniform invoke(tool, args) over a single stdio connection
    - evaluate() / evaluate_statement() for page-context JavaScript
    - best_effort() wrapper for calls whose failure is ignored
    - Injected-once guard for the page-side resolver helpers
    """

    NAVIGATE_TOOL = "browser_navigate"
    WAIT_TOOL = "browser_wait_for"
    EVALUATE_TOOL = "browser_evaluate"
    SCREENSHOT_TOOL = "browser_take_screenshot"

    DEFAULT_COMMAND = "npx"
    DEFAULT_ARGS = ["-y", "@playwright/mcp@0.0.37"]

    def __init__(
        self,
        command: str = DEFAULT_COMMAND,
        args: Optional[List[str]] = None,
        env: Optional[Dict[str, str]] = None
    ):
        self.command = command
        self.args = list(self.DEFAULT_ARGS if args is None else args)
        self.env = env

        self._session: Optional[ClientSession] = None
        self._exit_stack: Optional[AsyncExitStack] = None
        self._closed = False
        self.helpers_injected = False

    @property
    def is_connected(self) -> bool:
        return self._session is not None

    async def connect(self):
        """Start the tool server and initialize the MCP session"""
        if self._session is not None:
            return

        server_params = StdioServerParameters(
            command=self.command,
            args=self.args,
            env=self.env
        )
        stack = AsyncExitStack()
        try:
            read_stream, write_stream = await stack.enter_async_context(stdio_client(server_params))
            session = await stack.enter_async_context(ClientSession(read_stream, write_stream))
            await session.initialize()
        except BaseException:
            await stack.aclose()
            raise

        self._exit_stack = stack
        self._session = session
        logger.info(f"Connected to tool server: {self.command} {' '.join(self.args)}")

    async def close(self):
        """Close the connection; later calls are no-ops"""
        if self._closed:
            return
        self._closed = True
        self._session = None
        self.helpers_injected = False
        if self._exit_stack is not None:
            stack, self._exit_stack = self._exit_stack, None
            await stack.aclose()
            logger.info("Disconnected from tool server")

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    # ==================== Tool Calls ====================

    async def _call_tool(self, name: str, arguments: Dict[str, Any]):
        if self._session is None:
            raise ToolCallError(name, "session is not connected")
        return await self._session.call_tool(name, arguments=arguments)

    async def _invoke_result(self, tool: str, args: Optional[Dict[str, Any]] = None):
        logger.debug(f"[TOOL] {tool} {args or {}}")
        try:
            result = await self._call_tool(tool, args or {})
        except ToolCallError:
            raise
        except Exception as e:
            raise ToolCallError(tool, str(e)) from e

        if _field(result, 'isError', False):
            raise ToolCallError(tool, _error_text(_field(result, 'content', [])))
        return result

    async def invoke(self, tool: str, args: Optional[Dict[str, Any]] = None) -> List[Any]:
        """Call a tool and return its content items"""
        result = await self._invoke_result(tool, args)
        return list(_field(result, 'content', None) or [])

    async def evaluate(self, expression: str) -> Any:
        """Evaluate an expression in the page and return its value"""
        result = await self._invoke_result(
            self.EVALUATE_TOOL, {"function": f"() => ({expression})"}
        )
        return pick_value(
            list(_field(result, 'content', None) or []),
            _field(result, 'structuredContent', None)
        )

    async def evaluate_statement(self, code: str):
        """Run statements in the page, ignoring any value"""
        await self.invoke(self.EVALUATE_TOOL, {"function": f"() => {{ {code} }}"})

    async def navigate(self, url: str) -> List[Any]:
        # A new document has no helpers, even if the call itself fails midway
        self.helpers_injected = False
        return await self.invoke(self.NAVIGATE_TOOL, {"url": url})

    async def wait_for(self, state: str, timeout: int) -> List[Any]:
        return await self.invoke(self.WAIT_TOOL, {"state": state, "timeout": timeout})

    async def screenshot(self) -> Optional[bytes]:
        """Full-page screenshot as image bytes, None when the server sent no image"""
        contents = await self.invoke(self.SCREENSHOT_TOOL, {"fullPage": True})
        for item in contents:
            if _field(item, 'type') == 'image' and _field(item, 'data'):
                return base64.b64decode(_field(item, 'data'))
        return None

    async def page_markup(self) -> Optional[str]:
        markup = await self.evaluate(PAGE_MARKUP_EXPR)
        return markup if isinstance(markup, str) else None

    async def best_effort(
        self,
        call: Callable[..., Awaitable[Any]],
        *args,
        default: Any = None
    ) -> Any:
        """
        Await call(*args), returning default instead of raising.

        Used for waits, screenshots and probes: a timeout or tool error here
        only means the page state could not be confirmed.
        """
        try:
            return await call(*args)
        except Exception as e:
            logger.debug(f"Best-effort {getattr(call, '__name__', call)}{args} ignored: {e}")
            return default

    # ==================== Page Helpers ====================

    async def ensure_helpers(self):
        """Install the resolver helpers into the current document once"""
        if self.helpers_injected:
            return
        await self.evaluate_statement(HELPERS_SCRIPT)
        self.helpers_injected = True
        logger.debug("Resolver helpers injected")

    def invalidate_helpers(self):
        """Forget the injection, e.g. after an action that may load a new document"""
        self.helpers_injected = False
