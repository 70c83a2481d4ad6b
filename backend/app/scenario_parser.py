"""
Scenario Parser
Parses natural-language scenario documents into ScenarioSuite objects
"""

import re
from typing import List, Optional
from models_scenario import ScenarioSuite, ScenarioCase, DEFAULT_SUITE_NAME, DEFAULT_CASE_TITLE


SUITE_PATTERN = re.compile(r'^\s*suite:\s*(.+?)\s*$', re.MULTILINE)
CASE_MARKER = 'case:'
BULLET_PREFIX = re.compile(r'^-+\s*')


class ScenarioParser:
    """Parse scenario documents (suite/case/bullet steps) into structured objects"""

    @staticmethod
    def parse(content: str, source: Optional[str] = None) -> ScenarioSuite:
        """
        Parse scenario document content into a ScenarioSuite

        Args:
            content: The document text
            source: Optional path the text was read from

        Returns:
            ScenarioSuite object
        """
        suite_match = SUITE_PATTERN.search(content)
        suite_name = suite_match.group(1) if suite_match else DEFAULT_SUITE_NAME

        lines = content.splitlines()
        cases = []
        current_title = None
        current_steps: List[str] = []

        for line in lines:
            stripped = line.strip()

            if stripped.startswith(CASE_MARKER):
                if current_title is not None:
                    cases.append(ScenarioCase(title=current_title, steps=current_steps))
                current_title = stripped[len(CASE_MARKER):].strip() or 'case'
                current_steps = []
                continue

            # Bullets before the first case: marker belong to no case
            if current_title is not None and stripped.startswith('-'):
                current_steps.append(ScenarioParser.strip_bullet(stripped))

        if current_title is not None:
            cases.append(ScenarioCase(title=current_title, steps=current_steps))

        if not cases:
            steps = [
                ScenarioParser.strip_bullet(line.strip())
                for line in lines
                if line.strip().startswith('-')
            ]
            cases.append(ScenarioCase(title=DEFAULT_CASE_TITLE, steps=steps))

        return ScenarioSuite(name=suite_name, cases=cases, source=source)

    @staticmethod
    def strip_bullet(line: str) -> str:
        """Remove the leading bullet marker(s) and surrounding whitespace"""
        return BULLET_PREFIX.sub('', line.strip()).strip()

    @staticmethod
    def parse_file(file_path: str) -> ScenarioSuite:
        """Parse a scenario document from disk; invalid UTF-8 bytes become U+FFFD"""
        with open(file_path, 'r', encoding='utf-8', errors='replace') as f:
            content = f.read()
        return ScenarioParser.parse(content, source=str(file_path))


# Utility function for quick parsing
def parse_scenario(content: str) -> ScenarioSuite:
    """Quick utility to parse scenario content"""
    return ScenarioParser.parse(content)
