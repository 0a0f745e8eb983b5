"""
Heuristic rule engine.

Every detector looks at the raw text (and its line-split form) and reports at
most one finding into either ``issues`` or ``suggestions``. Matching is regex
based only, so minified or multi-statement lines can fool it.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, List, Literal, Optional

from qcr.core.schemas import AnalysisResult, Finding, Severity

logger = logging.getLogger(__name__)

Target = Literal["issues", "suggestions"]

COMPLEXITY_THRESHOLD = 10
MIN_LINES_FOR_COMMENT_CHECK = 50
MIN_COMMENT_RATIO = 0.1

EVAL_RE = re.compile(r"\beval\s*\(")
PASSWORD_RE = re.compile(r"password\s*=\s*['\"]", re.IGNORECASE)
INNER_HTML_RE = re.compile(r"innerHTML")
SQL_CONCAT_RE = re.compile(r"SELECT.*FROM.*WHERE.*\+", re.IGNORECASE)
VAR_RE = re.compile(r"\bvar\s")
CONSOLE_LOG_RE = re.compile(r"\bconsole\.log\b")
FETCH_RE = re.compile(r"\bfetch\s*\(")
CATCH_RE = re.compile(r"\bcatch\b")
BRANCH_RE = re.compile(r"\b(?:if|for|while|switch|catch)\b")
FUNCTION_RE = re.compile(r"\bfunction\b|=>|\bdef\s+\w+|\bfunc\s+\w+|\bfn\s+\w+")
COMMENT_LINE_RE = re.compile(r"^\s*(?://|#|/\*|\*|<!--)")
MAGIC_NUMBER_RE = re.compile(r"(?<![\w.])\d{3,}\b")
CONSTANT_DECL_RE = re.compile(
    r"^\s*(?:export\s+)?(?:const\b|final\b|static\s+final\b|#define\b|[A-Z][A-Z0-9_]*\s*[:=])"
)


@dataclass(frozen=True)
class Detector:
    """One row of the rule table.

    ``matches`` decides whether the rule fires on the whole text. ``locate``,
    when present, returns the 1-based line where the first hit starts;
    aggregate rules leave it unset and report no line.
    """

    rule: str
    target: Target
    severity: Severity
    message: str
    matches: Callable[[str, List[str]], bool]
    locate: Optional[Callable[[str], Optional[int]]] = None

    def run(self, content: str, lines: List[str]) -> Optional[Finding]:
        if not self.matches(content, lines):
            return None
        line = self.locate(content) if self.locate else None
        return Finding(severity=self.severity, message=self.message, line=line, rule=self.rule)


def first_line(pattern: re.Pattern[str], content: str) -> Optional[int]:
    m = pattern.search(content)
    if m is None:
        return None
    return content.count("\n", 0, m.start()) + 1


def _pattern(rule: str, target: Target, severity: Severity, message: str, pattern: re.Pattern[str]) -> Detector:
    return Detector(
        rule=rule,
        target=target,
        severity=severity,
        message=message,
        matches=lambda content, _lines: pattern.search(content) is not None,
        locate=lambda content: first_line(pattern, content),
    )


def _unhandled_fetch(content: str, _lines: List[str]) -> bool:
    return FETCH_RE.search(content) is not None and CATCH_RE.search(content) is None


def _too_complex(content: str, _lines: List[str]) -> bool:
    if not FUNCTION_RE.search(content):
        return False
    return len(BRANCH_RE.findall(content)) > COMPLEXITY_THRESHOLD


def comment_ratio(lines: List[str]) -> float:
    if not lines:
        return 0.0
    comments = sum(1 for ln in lines if COMMENT_LINE_RE.match(ln))
    return comments / len(lines)


def _under_commented(_content: str, lines: List[str]) -> bool:
    return len(lines) > MIN_LINES_FOR_COMMENT_CHECK and comment_ratio(lines) < MIN_COMMENT_RATIO


def _has_magic_numbers(_content: str, lines: List[str]) -> bool:
    for ln in lines:
        if CONSTANT_DECL_RE.match(ln) or COMMENT_LINE_RE.match(ln):
            continue
        if MAGIC_NUMBER_RE.search(ln):
            return True
    return False


DETECTORS: tuple[Detector, ...] = (
    _pattern("eval-usage", "issues", "high", "Avoid using eval() - security risk", EVAL_RE),
    _pattern("hardcoded-password", "issues", "critical", "Hardcoded credentials detected", PASSWORD_RE),
    _pattern("inner-html", "issues", "medium", "innerHTML can lead to XSS vulnerabilities", INNER_HTML_RE),
    Detector(
        rule="sql-concatenation",
        target="issues",
        severity="critical",
        message="Potential SQL injection vulnerability detected",
        matches=lambda content, _lines: SQL_CONCAT_RE.search(content) is not None,
    ),
    _pattern("var-declaration", "suggestions", "low", "Use const or let instead of var", VAR_RE),
    _pattern("console-log", "suggestions", "low", "Remove console.log statements in production", CONSOLE_LOG_RE),
    Detector(
        rule="unhandled-fetch",
        target="suggestions",
        severity="medium",
        message="Add error handling for async operations",
        matches=_unhandled_fetch,
    ),
    Detector(
        rule="high-complexity",
        target="suggestions",
        severity="medium",
        message="High cyclomatic complexity - consider breaking functions into smaller pieces",
        matches=_too_complex,
    ),
    Detector(
        rule="low-comment-density",
        target="suggestions",
        severity="low",
        message="Add comments to improve code readability",
        matches=_under_commented,
    ),
    Detector(
        rule="magic-numbers",
        target="suggestions",
        severity="low",
        message="Replace magic numbers with named constants",
        matches=_has_magic_numbers,
    ),
)


def analyze(content: str, detectors: tuple[Detector, ...] = DETECTORS) -> AnalysisResult:
    """Run every detector over ``content``. Pure: same text, same result."""
    result = AnalysisResult()
    if not content:
        return result

    lines = content.split("\n")
    for det in detectors:
        finding = det.run(content, lines)
        if finding is None:
            continue
        logger.debug("rule %s fired (line=%s)", det.rule, finding.line)
        getattr(result, det.target).append(finding)

    return result
