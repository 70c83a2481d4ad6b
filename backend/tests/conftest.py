"""
Pytest configuration and shared fixtures for scenario runner tests.
"""

import base64
import json
import sys
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional
from urllib.parse import urlsplit

import pytest
import pytest_asyncio
from mcp.types import CallToolResult, ImageContent, TextContent

# Add backend app to path
sys.path.insert(0, str(Path(__file__).parent.parent / "app"))

from config import Settings
from mcp_session import McpBrowserSession
from page_helpers import HELPERS_SCRIPT
from run_reporter import RunReporter


FAKE_PNG = b"\x89PNG\r\n\x1a\nfake"


def text_result(value: Any) -> CallToolResult:
    return CallToolResult(content=[TextContent(type="text", text=json.dumps(value))])


def image_result(data: bytes) -> CallToolResult:
    return CallToolResult(content=[
        ImageContent(type="image", data=base64.b64encode(data).decode("ascii"), mimeType="image/png")
    ])


# ==================== Scripted Tool Server ====================

class ScriptedToolSession(McpBrowserSession):
    """
    Session whose tool server is a script.

    evaluate_results maps a fragment of the evaluated function source to the
    value it returns (or to a callable producing it); the first fragment found
    wins. Tools listed in failing_tools raise like a timed-out call.
    """

    def __init__(
        self,
        evaluate_results: Optional[Dict[str, Any]] = None,
        failing_tools: Iterable[str] = (),
        on_call: Optional[Callable[[str, Dict[str, Any]], None]] = None
    ):
        super().__init__(command="fake-server", args=[])
        self.evaluate_results = dict(evaluate_results or {})
        self.failing_tools = set(failing_tools)
        self.on_call = on_call
        self.calls: List[tuple] = []
        self.connect_count = 0
        self.close_count = 0

    async def connect(self):
        self.connect_count += 1

    async def close(self):
        self.close_count += 1

    async def _call_tool(self, name: str, arguments: Dict[str, Any]):
        self.calls.append((name, arguments))
        if self.on_call:
            self.on_call(name, arguments)
        if name in self.failing_tools:
            raise TimeoutError(f"{name} timed out")

        if name == self.EVALUATE_TOOL:
            source = arguments["function"]
            for fragment, value in self.evaluate_results.items():
                if fragment in source:
                    return text_result(value(source) if callable(value) else value)
            return CallToolResult(content=[])
        if name == self.SCREENSHOT_TOOL:
            return image_result(FAKE_PNG)
        return CallToolResult(content=[TextContent(type="text", text="ok")])

    @property
    def tool_names(self) -> List[str]:
        return [name for name, _ in self.calls]

    def evaluated(self) -> List[str]:
        return [args["function"] for name, args in self.calls if name == self.EVALUATE_TOOL]

    def waits(self) -> List[tuple]:
        return [(args["state"], args["timeout"]) for name, args in self.calls if name == self.WAIT_TOOL]

    def navigations(self) -> List[str]:
        return [args["url"] for name, args in self.calls if name == self.NAVIGATE_TOOL]


@pytest.fixture
def scripted_session():
    """Factory for scripted sessions"""
    return ScriptedToolSession


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        base_url="http://127.0.0.1:8080",
        nl_dir=str(tmp_path / "md"),
        artifacts_dir=str(tmp_path / "artifacts"),
    )


@pytest.fixture
def reporter(settings) -> RunReporter:
    return RunReporter(settings.artifacts_dir)


# ==================== Sample Documents ====================

LOGIN_PAGE = """<!doctype html><html lang="ja"><meta charset="utf-8" /><title>ログイン</title>
<h1>ログイン</h1>
<form id="f">
  <label for="email">メールアドレス</label>
  <input id="email" type="email" />
  <br/>
  <label for="pw">パスワード</label>
  <input id="pw" type="password" />
  <br/>
  <button type="submit">ログイン</button>
</form>
<div id="app"></div>
<script>
  document.getElementById('f').addEventListener('submit', (e) => {
    e.preventDefault();
    const email = document.getElementById('email').value;
    const pw = document.getElementById('pw').value;
    const ok = email === 'user@example.com' && pw === 'pass';
    const app = document.getElementById('app');
    app.innerHTML = ok
      ? '<h2>ダッシュボード</h2>'
      : '<p style="color:red">メールアドレスかパスワードが違います</p>';
  });
</script></html>"""


@pytest.fixture
def write_document(tmp_path):
    """Write a scenario document and return its path"""
    def _write(text: str, name: str = "login.md") -> str:
        md_dir = tmp_path / "md"
        md_dir.mkdir(parents=True, exist_ok=True)
        path = md_dir / name
        path.write_text(text, encoding="utf-8")
        return str(path)
    return _write


# ==================== Real Browser ====================

class PlaywrightToolSession(McpBrowserSession):
    """Session whose tools are served by a local Playwright page"""

    def __init__(self, page):
        super().__init__(command="playwright-page", args=[])
        self.page = page
        self.close_count = 0

    async def connect(self):
        pass

    async def close(self):
        self.close_count += 1

    async def _call_tool(self, name: str, arguments: Dict[str, Any]):
        if name == self.NAVIGATE_TOOL:
            await self.page.goto(arguments["url"])
            return CallToolResult(content=[TextContent(type="text", text="navigated")])
        if name == self.WAIT_TOOL:
            await self.page.wait_for_load_state(arguments["state"], timeout=arguments["timeout"])
            return CallToolResult(content=[TextContent(type="text", text="waited")])
        if name == self.EVALUATE_TOOL:
            return text_result(await self.page.evaluate(arguments["function"]))
        if name == self.SCREENSHOT_TOOL:
            return image_result(await self.page.screenshot(full_page=True))
        raise ValueError(f"unknown tool {name}")


@pytest_asyncio.fixture
async def browser_page():
    """Headless Chromium page; skipped when no browser is installed"""
    async_api = pytest.importorskip("playwright.async_api")
    async with async_api.async_playwright() as pw:
        try:
            browser = await pw.chromium.launch()
        except Exception as e:
            pytest.skip(f"Chromium is not available (run `playwright install chromium`): {e}")
        try:
            yield await browser.new_page()
        finally:
            await browser.close()


@pytest.fixture
def load_resolver(browser_page):
    """Put markup into the page and install the resolver helpers"""
    async def _load(html: str):
        await browser_page.set_content(html)
        await browser_page.evaluate(f"() => {{ {HELPERS_SCRIPT} }}")
        return browser_page
    return _load


@pytest_asyncio.fixture
async def site_session(browser_page):
    """
    Playwright-backed session serving pages for http://127.0.0.1:8080.
    Only /login.html exists; /login answers 404 with an empty body.
    """
    pages = {"/login.html": LOGIN_PAGE}

    async def handle(route):
        path = urlsplit(route.request.url).path
        if path in pages:
            await route.fulfill(status=200, content_type="text/html; charset=utf-8", body=pages[path])
        else:
            await route.fulfill(status=404, content_type="text/html", body="")

    await browser_page.route("http://127.0.0.1:8080/**", handle)
    return PlaywrightToolSession(browser_page)
