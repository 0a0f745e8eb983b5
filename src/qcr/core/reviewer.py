from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, Optional

from qcr.core.ai_client import AIReviewClient
from qcr.core.errors import AnalysisInputError, ExternalServiceError
from qcr.core.rules import analyze
from qcr.core.schemas import Finding, Review, SourceFile
from qcr.core.scoring import ScoringPolicy, SeverityWeightedPolicy, select_summary, summarize

logger = logging.getLogger(__name__)


def detect_language(path: str) -> str:
    ext = Path(path).suffix.lower()
    return {
        ".py": "python",
        ".js": "javascript",
        ".jsx": "javascript",
        ".ts": "typescript",
        ".tsx": "typescript",
        ".java": "java",
        ".go": "go",
        ".rs": "rust",
        ".cpp": "cpp",
        ".c": "c",
        ".cs": "csharp",
        ".php": "php",
        ".rb": "ruby",
        ".html": "html",
        ".css": "css",
    }.get(ext, "unknown")


def failed_review(filename: str, language: str, reason: str) -> Review:
    """Score 0 with one critical finding naming the failure."""
    return Review(
        filename=filename,
        language=language,
        score=0,
        issues=[Finding(severity="critical", message=f"Review failed: {reason}", rule="review-failed")],
        suggestions=[],
        summary=select_summary(0, True),
        error=reason,
    )


def review_code(
    *,
    path: str,
    code: str,
    policy: Optional[ScoringPolicy] = None,
    ai_client: Optional[AIReviewClient] = None,
    reject_empty: bool = False,
) -> Review:
    """
    Review one file: rules, optional AI pass, then score and summary.

    Input and AI failures come back as a failed review rather than an
    exception, so callers looping over many files never have to catch.
    """
    policy = policy or SeverityWeightedPolicy()
    language = detect_language(path)

    try:
        if reject_empty and not code.strip():
            raise AnalysisInputError("Code cannot be empty")

        result = analyze(code)

        if ai_client is not None and code.strip():
            text = ai_client.review_text(code, language, path=path)
            if text.strip():
                result.suggestions.append(Finding(severity="low", message=text.strip(), rule="ai-review"))
    except (AnalysisInputError, ExternalServiceError) as e:
        logger.warning("Review of %s failed: %s", path, e)
        return failed_review(path, language, str(e))
    except Exception as e:
        # any collaborator failure stays local to this file
        logger.exception("Unexpected error reviewing %s", path)
        return failed_review(path, language, f"{type(e).__name__}: {e}")

    score, summary = summarize(result, policy)
    return Review(
        filename=path,
        language=language,
        score=score,
        issues=result.issues,
        suggestions=result.suggestions,
        summary=summary,
    )


def review_source(source: SourceFile, **kwargs) -> Review:
    return review_code(path=source.name, code=source.content, **kwargs)


def review_batch(
    sources: Iterable[SourceFile],
    *,
    policy: Optional[ScoringPolicy] = None,
    ai_client: Optional[AIReviewClient] = None,
    reject_empty: bool = False,
    max_workers: int = 4,
) -> list[Review]:
    """Review files in parallel. Output order follows input order."""
    sources = list(sources)
    if not sources:
        return []

    def _one(src: SourceFile) -> Review:
        return review_source(src, policy=policy, ai_client=ai_client, reject_empty=reject_empty)

    workers = max(1, min(max_workers, len(sources)))
    with ThreadPoolExecutor(max_workers=workers) as pool:
        reviews = list(pool.map(_one, sources))

    failed = sum(1 for r in reviews if r.failed)
    logger.info("Reviewed %d file(s), %d failed", len(reviews), failed)
    return reviews
