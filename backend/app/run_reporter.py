"""
Run Reporter
Console markers and per-document artifacts
"""

import json
import logging
import re
from pathlib import Path
from typing import Optional

from models_scenario import RunMeta, ScenarioSuite, StepClassification, StepOutcome, SuiteResult

logger = logging.getLogger(__name__)


def slugify(name: str, max_length: int = 80) -> str:
    """File-system friendly name: ASCII letters and digits joined by dashes"""
    return re.sub(r'[^a-z0-9]+', '-', name, flags=re.IGNORECASE).strip('-')[:max_length]


class RunReporter:
    """
    Tracks every document of a run.

    Artifacts per document live in <artifacts>/exec/<slug>/:
    meta.json (the plan, written before any step runs), result.json and,
    with SAVE_HTML, pages/NNN.html. Resolution failures go to
    <artifacts>/exec-debug/.
    """

    def __init__(self, artifacts_dir: str = "artifacts"):
        self.artifacts_dir = Path(artifacts_dir)
        self.exec_dir = self.artifacts_dir / "exec"
        self.debug_dir = self.artifacts_dir / "exec-debug"
        self.current_dir: Optional[Path] = None
        self._page_count = 0

    def document_dir(self, source: Optional[str]) -> Path:
        stem = Path(source).stem if source else "document"
        return self.exec_dir / (slugify(stem) or "document")

    # ==================== Artifacts ====================

    def write_plan(self, suite: ScenarioSuite) -> Path:
        """Record suite name, source and flattened steps before execution"""
        self.current_dir = self.document_dir(suite.source)
        self.current_dir.mkdir(parents=True, exist_ok=True)
        self._page_count = 0

        meta = RunMeta(suite=suite.name, file=suite.source, steps=suite.flatten())
        meta_path = self.current_dir / "meta.json"
        with open(meta_path, 'w', encoding='utf-8') as f:
            json.dump(meta.model_dump(mode='json', by_alias=True), f, indent=2, ensure_ascii=False)
        return meta_path

    def write_result(self, result: SuiteResult) -> Optional[Path]:
        if self.current_dir is None:
            return None
        result_path = self.current_dir / "result.json"
        with open(result_path, 'w', encoding='utf-8') as f:
            json.dump(result.to_dict(), f, indent=2, ensure_ascii=False)
        return result_path

    def save_page(self, markup: str) -> Optional[Path]:
        """Keep the rendered markup of a page the run landed on"""
        if self.current_dir is None:
            return None
        self._page_count += 1
        pages_dir = self.current_dir / "pages"
        pages_dir.mkdir(parents=True, exist_ok=True)
        page_path = pages_dir / f"{self._page_count:03d}.html"
        page_path.write_text(markup, encoding='utf-8')
        return page_path

    def write_debug_snapshot(
        self,
        step: StepClassification,
        image: Optional[bytes] = None,
        markup: Optional[str] = None
    ) -> Optional[Path]:
        """Screenshot and markup of the page at the moment a target was not found"""
        self.debug_dir.mkdir(parents=True, exist_ok=True)
        stem = f"{step.kind.value}-{slugify(step.target or step.raw) or 'step'}"

        if image:
            (self.debug_dir / f"{stem}.png").write_bytes(image)
        if isinstance(markup, str):
            (self.debug_dir / f"{stem}.html").write_text(markup, encoding='utf-8')
            (self.debug_dir / "last-page.html").write_text(markup, encoding='utf-8')
        logger.info(f"Debug snapshot saved: {self.debug_dir / stem}")
        return self.debug_dir / stem

    def write_probe(
        self,
        url: str,
        image: Optional[bytes] = None,
        markup: Optional[str] = None
    ) -> Path:
        probe_dir = self.artifacts_dir / "probe"
        probe_dir.mkdir(parents=True, exist_ok=True)
        stem = slugify(url) or "page"

        if image:
            (probe_dir / f"{stem}.png").write_bytes(image)
        if isinstance(markup, str):
            (probe_dir / f"{stem}.html").write_text(markup, encoding='utf-8')
        print(f"[probe] {url} -> {probe_dir / stem}", flush=True)
        return probe_dir / stem

    # ==================== Console ====================

    def suite_started(self, suite: ScenarioSuite):
        print(f"[exec] suite={suite.name} file={suite.source} steps={suite.step_count}", flush=True)

    def case_started(self, title: str):
        print(f"  case: {title}", flush=True)

    def step_passed(self, outcome: StepOutcome):
        print(f"   ✓ {outcome.step}", flush=True)

    def step_failed(self, outcome: StepOutcome):
        print(f"   ✕ {outcome.step}  ({outcome.reason})", flush=True)

    def suite_finished(self, result: SuiteResult):
        self.write_result(result)
        if result.failed == 0:
            print(f"\n PASS {result.source} ({result.passed}/{result.total})\n", flush=True)
        else:
            print(
                f"\n FAIL {result.source} ({result.passed} passed, {result.failed} failed)\n",
                flush=True
            )
