"""
Scenario run errors
"""


class StepError(Exception):
    """A recognized step could not do what it describes"""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class TargetNotFoundError(StepError):
    """Fill/Click resolver found no element for the target"""


class AssertionFailedError(StepError):
    """Visible-text check was false"""


class ToolCallError(Exception):
    """The remote tool server rejected or failed a tool call"""

    def __init__(self, tool: str, message: str):
        super().__init__(f"{tool}: {message}")
        self.tool = tool
        self.message = message


class NoScenarioFilesError(Exception):
    """No scenario documents could be resolved"""
