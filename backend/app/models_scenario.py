"""
Scenario Models
Structured representation of natural-language scenario documents and their run results
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from enum import Enum


DEFAULT_SUITE_NAME = "Suite"
DEFAULT_CASE_TITLE = "default"


class StepKind(str, Enum):
    """Action kinds a step can be classified into"""
    NAVIGATE = "navigate"
    FILL = "fill"
    CLICK = "click"
    ASSERT_VISIBLE = "assert_visible"
    UNRECOGNIZED = "unrecognized"


class StepStatus(str, Enum):
    OK = "ok"
    FAILED = "failed"


class ScenarioCase(BaseModel):
    """A named, ordered group of raw steps"""
    model_config = ConfigDict(frozen=True)

    title: str
    steps: List[str] = []  # e.g. ["/login に移動", "ログイン をクリック"]


class FlatStep(BaseModel):
    """One step with the title of the case it belongs to"""
    model_config = ConfigDict(populate_by_name=True)

    case_title: str = Field(alias="caseTitle")
    step: str


class ScenarioSuite(BaseModel):
    """A parsed scenario document"""
    model_config = ConfigDict(frozen=True)

    name: str = DEFAULT_SUITE_NAME
    cases: List[ScenarioCase] = []
    source: Optional[str] = None

    def flatten(self) -> List[FlatStep]:
        """All steps in execution order"""
        return [
            FlatStep(case_title=case.title, step=step)
            for case in self.cases
            for step in case.steps
        ]

    @property
    def step_count(self) -> int:
        return sum(len(case.steps) for case in self.cases)


class StepClassification(BaseModel):
    """
    Result of matching a raw step against the step rules.

    Navigate:      target = path or URL
    Fill:          target = label, value = text to type
    Click:         target = caption
    AssertVisible: target = expected text
    Unrecognized:  only raw is set
    """
    kind: StepKind
    raw: str
    target: Optional[str] = None
    value: Optional[str] = None

    def describe(self) -> str:
        if self.kind == StepKind.FILL:
            return f"{self.kind.value}({self.target!r}, {self.value!r})"
        if self.target is not None:
            return f"{self.kind.value}({self.target!r})"
        return f"{self.kind.value}({self.raw!r})"


class StepOutcome(BaseModel):
    """Outcome of executing a single step"""
    step: str
    case_title: str
    kind: StepKind = StepKind.UNRECOGNIZED
    status: StepStatus = StepStatus.OK
    reason: Optional[str] = None
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status == StepStatus.OK


class CaseResult(BaseModel):
    title: str
    outcomes: List[StepOutcome] = []

    @property
    def status(self) -> StepStatus:
        if any(not outcome.ok for outcome in self.outcomes):
            return StepStatus.FAILED
        return StepStatus.OK


class SuiteResult(BaseModel):
    """Result of running one scenario document, built step by step"""
    suite_name: str
    source: Optional[str] = None
    cases: List[CaseResult] = []

    def start_case(self, title: str) -> CaseResult:
        case_result = CaseResult(title=title)
        self.cases.append(case_result)
        return case_result

    @property
    def per_step(self) -> List[StepOutcome]:
        return [outcome for case in self.cases for outcome in case.outcomes]

    @property
    def passed(self) -> int:
        return sum(1 for outcome in self.per_step if outcome.ok)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.per_step if not outcome.ok)

    @property
    def total(self) -> int:
        return len(self.per_step)

    @property
    def status(self) -> StepStatus:
        return StepStatus.FAILED if self.failed else StepStatus.OK

    def to_dict(self):
        return {
            "suite": self.suite_name,
            "file": self.source,
            "passed": self.passed,
            "failed": self.failed,
            "total": self.total,
            "status": self.status.value,
            "cases": [
                {
                    "title": case.title,
                    "status": case.status.value,
                    "steps": [outcome.model_dump(mode="json") for outcome in case.outcomes],
                }
                for case in self.cases
            ],
        }


class RunMeta(BaseModel):
    """Execution plan recorded before a document runs"""
    suite: str
    file: Optional[str] = None
    steps: List[FlatStep] = []


class RunSummary(BaseModel):
    """Results of every document processed in one invocation"""
    results: List[SuiteResult] = []

    @property
    def failed(self) -> int:
        return sum(result.failed for result in self.results)

    @property
    def passed(self) -> int:
        return sum(result.passed for result in self.results)

    @property
    def exit_code(self) -> int:
        return 1 if self.failed else 0
