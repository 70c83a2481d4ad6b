"""
Scenario Executor
Runs parsed scenario documents step by step over one browser session
NO AI REQUIRED AT RUNTIME
"""

import logging
import time
from typing import Iterable, Optional

from config import Settings
from mcp_session import McpBrowserSession
from models_scenario import (
    RunSummary, ScenarioSuite, StepKind, StepOutcome, StepStatus, SuiteResult
)
from run_reporter import RunReporter
from scenario_errors import StepError
from scenario_parser import ScenarioParser
from step_definitions import StepDefinitionLibrary, classify_step, resolve_url

logger = logging.getLogger(__name__)


class ScenarioExecutor:
    """
    Executes scenario documents sequentially.

    A failing step marks itself and its case failed; the remaining steps of
    the case and the remaining documents still run.
    """

    INITIAL_LOAD_TIMEOUT = 4000  # ms
    PROBE_TIMEOUT = 8000  # ms

    def __init__(
        self,
        session: McpBrowserSession,
        settings: Optional[Settings] = None,
        reporter: Optional[RunReporter] = None
    ):
        self.session = session
        self.settings = settings or Settings()
        self.reporter = reporter or RunReporter(self.settings.artifacts_dir)
        self.step_library = StepDefinitionLibrary(
            session,
            base_url=self.settings.base_url,
            reporter=self.reporter,
            save_html=self.settings.save_html
        )

    async def run_files(self, paths: Iterable[str]) -> RunSummary:
        summary = RunSummary()
        for path in paths:
            summary.results.append(await self.run_file(path))
        return summary

    async def run_file(self, path: str) -> SuiteResult:
        suite = ScenarioParser.parse_file(path)
        return await self.run_suite(suite)

    async def run_suite(self, suite: ScenarioSuite) -> SuiteResult:
        """
        Execute every case of a suite

        Args:
            suite: Parsed document

        Returns:
            SuiteResult with one outcome per step
        """
        self.reporter.write_plan(suite)
        self.reporter.suite_started(suite)

        if not self._has_navigation(suite):
            await self._open_base_page()

        result = SuiteResult(suite_name=suite.name, source=suite.source)
        for case in suite.cases:
            case_result = result.start_case(case.title)
            self.reporter.case_started(case.title)
            for raw_step in case.steps:
                case_result.outcomes.append(await self.execute_step(raw_step, case.title))

        self.reporter.suite_finished(result)
        return result

    async def execute_step(self, raw_step: str, case_title: str) -> StepOutcome:
        """Execute a single step, turning a StepError into a failed outcome"""
        kind = classify_step(raw_step).kind
        start_time = time.time()

        try:
            await self.step_library.execute(raw_step)
            outcome = StepOutcome(step=raw_step, case_title=case_title, kind=kind)
        except StepError as e:
            outcome = StepOutcome(
                step=raw_step,
                case_title=case_title,
                kind=kind,
                status=StepStatus.FAILED,
                reason=e.reason
            )

        outcome.duration = time.time() - start_time
        if outcome.ok:
            self.reporter.step_passed(outcome)
        else:
            self.reporter.step_failed(outcome)
        return outcome

    async def probe(self, url: str):
        """Open one page and keep its markup and screenshot under <artifacts>/probe"""
        s = self.session
        target = resolve_url(url, self.settings.base_url)
        await s.best_effort(s.navigate, target)
        await s.best_effort(s.wait_for, "load", self.PROBE_TIMEOUT)
        await s.best_effort(s.wait_for, "networkidle", self.PROBE_TIMEOUT)

        image = await s.best_effort(s.screenshot)
        markup = await s.best_effort(s.page_markup)
        return self.reporter.write_probe(target, image=image, markup=markup)

    @staticmethod
    def _has_navigation(suite: ScenarioSuite) -> bool:
        return any(classify_step(flat.step).kind == StepKind.NAVIGATE for flat in suite.flatten())

    async def _open_base_page(self):
        s = self.session
        logger.info("No navigation step, opening the base URL first")
        await s.best_effort(s.navigate, resolve_url("/", self.settings.base_url))
        await s.best_effort(s.wait_for, "load", self.INITIAL_LOAD_TIMEOUT)
