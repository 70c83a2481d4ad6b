"""
Step Definition Library
Maps natural-language scenario steps to browser tool calls using ordered regex rules
NO AI REQUIRED AT RUNTIME
"""

import logging
import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Callable, Dict, Optional
from urllib.parse import urljoin, urlsplit, urlunsplit

from config import DEFAULT_BASE_URL
from mcp_session import McpBrowserSession, as_bool
from models_scenario import StepClassification, StepKind
from page_helpers import (
    HELPERS_MISSING,
    PAGE_HAS_TEXT_EXPR,
    click_by_text_expr,
    type_by_label_expr,
    visible_text_exists_expr,
)
from scenario_errors import AssertionFailedError, StepError, TargetNotFoundError, ToolCallError

# Configure logging
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepRule:
    """One step shape: a whole-line pattern and how to read its groups"""
    kind: StepKind
    pattern: re.Pattern
    build: Callable[[re.Match], Dict[str, str]]


# First match wins; every pattern must cover the whole trimmed line
STEP_RULES = [
    # ============ NAVIGATION ============
    StepRule(
        StepKind.NAVIGATE,
        re.compile(r"(/\S+?)\s*に移動"),
        lambda m: {"target": m.group(1)},
    ),
    # ============ TYPING / INPUT ============
    # label is everything before the last " に "
    StepRule(
        StepKind.FILL,
        re.compile(r"(.+)\s+に\s+(.+)\s+を入力"),
        lambda m: {"target": m.group(1).strip(), "value": m.group(2).strip()},
    ),
    # ============ CLICKING ============
    StepRule(
        StepKind.CLICK,
        re.compile(r"(.+)\s+をクリック"),
        lambda m: {"target": m.group(1).strip()},
    ),
    # ============ VISIBILITY ASSERTIONS ============
    StepRule(
        StepKind.ASSERT_VISIBLE,
        re.compile(r"(.+)\s+が見える"),
        lambda m: {"target": m.group(1).strip()},
    ),
]


def classify_step(raw_step: str) -> StepClassification:
    """Classify a raw step by the first rule matching the whole line"""
    text = raw_step.strip()
    for rule in STEP_RULES:
        match = rule.pattern.fullmatch(text)
        if match:
            return StepClassification(kind=rule.kind, raw=text, **rule.build(match))
    return StepClassification(kind=StepKind.UNRECOGNIZED, raw=text)


def resolve_url(target: str, base_url: str = DEFAULT_BASE_URL) -> str:
    """Absolute http(s) URLs pass through; anything else is joined onto the base URL"""
    if re.match(r'^https?://', target, re.IGNORECASE):
        return target
    return urljoin(base_url, target)


def with_html_suffix(url: str) -> Optional[str]:
    """Same URL with .html appended to its path, None when the path already has an extension"""
    parts = urlsplit(url)
    path = parts.path
    if not path or path.endswith('/') or PurePosixPath(path).suffix:
        return None
    return urlunsplit(parts._replace(path=path + '.html'))


class StepDefinitionLibrary:
    """
    Executes classified steps against the shared browser session.

    Only the primary resolver call of a Fill/Click/AssertVisible step decides
    its outcome. Waits, screenshots and probes go through
    McpBrowserSession.best_effort and never change it.
    """

    # Wait budgets in milliseconds
    LOAD_TIMEOUT = 8000
    NETWORK_IDLE_TIMEOUT = 8000
    SETTLE_TIMEOUT = 500
    CLICK_LOAD_TIMEOUT = 6000
    CLICK_IDLE_TIMEOUT = 6000

    def __init__(
        self,
        session: McpBrowserSession,
        base_url: str = DEFAULT_BASE_URL,
        reporter=None,
        save_html: bool = False
    ):
        self.session = session
        self.base_url = base_url
        self.reporter = reporter
        self.save_html = save_html

        # Register all step handlers
        self.step_handlers = self._register_steps()

    def _register_steps(self) -> Dict[StepKind, Callable]:
        return {
            StepKind.NAVIGATE: self.navigate,
            StepKind.FILL: self.fill_field,
            StepKind.CLICK: self.click_by_text,
            StepKind.ASSERT_VISIBLE: self.assert_visible,
            StepKind.UNRECOGNIZED: self.unrecognized,
        }

    async def execute(self, raw_step: str) -> StepClassification:
        """
        Classify a step and run its handler.

        Returns the classification; raises StepError when the step fails.
        """
        step = classify_step(raw_step)
        logger.debug(f"[MATCH] {step.describe()}")
        await self.step_handlers[step.kind](step)
        return step

    # ==================== IMPLEMENTATION METHODS ====================

    async def navigate(self, step: StepClassification) -> None:
        """Open a page; never fails, it only positions the browser"""
        s = self.session
        url = resolve_url(step.target, self.base_url)

        await s.best_effort(s.navigate, url)
        await s.best_effort(s.wait_for, "load", self.LOAD_TIMEOUT)

        has_text = await s.best_effort(s.evaluate, PAGE_HAS_TEXT_EXPR, default=True)
        if not as_bool(has_text):
            alternative = with_html_suffix(url)
            if alternative:
                logger.info(f"Empty page at {url}, trying {alternative}")
                await s.best_effort(s.navigate, alternative)
                await s.best_effort(s.wait_for, "load", self.LOAD_TIMEOUT)

        await s.best_effort(s.wait_for, "networkidle", self.NETWORK_IDLE_TIMEOUT)
        await s.best_effort(s.screenshot)

        if self.save_html and self.reporter is not None:
            markup = await s.best_effort(s.page_markup)
            if markup:
                self.reporter.save_page(markup)

    async def fill_field(self, step: StepClassification) -> None:
        """Type a value into the control found by its label"""
        found = await self._resolve(step, type_by_label_expr(step.target, step.value))
        if not found:
            await self._capture_failure(step)
            raise TargetNotFoundError(f"target not found: {step.target}")

        s = self.session
        await s.best_effort(s.wait_for, "networkidle", self.SETTLE_TIMEOUT)
        await s.best_effort(s.screenshot)

    async def click_by_text(self, step: StepClassification) -> None:
        """Activate the control best matching a caption"""
        clicked = await self._resolve(step, click_by_text_expr(step.target))
        if not clicked:
            await self._capture_failure(step)
            raise TargetNotFoundError(f"click target not found: {step.target}")

        s = self.session
        # A click may submit a form or follow a link into a new document
        s.invalidate_helpers()
        await s.best_effort(s.wait_for, "load", self.CLICK_LOAD_TIMEOUT)
        await s.best_effort(s.wait_for, "networkidle", self.CLICK_IDLE_TIMEOUT)
        await s.best_effort(s.screenshot)

    async def assert_visible(self, step: StepClassification) -> None:
        """Check that the rendered text contains the expected phrase"""
        visible = await self._resolve(step, visible_text_exists_expr(step.target))
        if not visible:
            raise AssertionFailedError(f"text not found: {step.target}")

    async def unrecognized(self, step: StepClassification) -> None:
        s = self.session
        await s.best_effort(s.screenshot)
        logger.warning(f"Unrecognized step: {step.raw}")

    # ==================== HELPERS ====================

    async def _resolve(self, step: StepClassification, expression: str) -> bool:
        """The primary call of a step: run a resolver expression in the page"""
        s = self.session
        try:
            await s.ensure_helpers()
            value = await s.evaluate(expression)
            if value == HELPERS_MISSING:
                # document replaced without a navigate or click, e.g. a client-side redirect
                logger.debug("Resolver helpers missing, injecting again")
                s.invalidate_helpers()
                await s.ensure_helpers()
                value = await s.evaluate(expression)
            return value != HELPERS_MISSING and as_bool(value)
        except ToolCallError as e:
            raise StepError(f"{step.kind.value} {step.target}: {e}") from e

    async def _capture_failure(self, step: StepClassification) -> None:
        """Save a screenshot and the page markup for a step whose target was not found"""
        s = self.session
        image = await s.best_effort(s.screenshot)
        markup = await s.best_effort(s.page_markup)
        if self.reporter is not None:
            self.reporter.write_debug_snapshot(step, image=image, markup=markup)
