from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
import argparse

from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from qcr.core.ai_client import AIReviewClient
from qcr.core.config import Settings
from qcr.core.errors import AnalysisInputError, ConfigurationError
from qcr.core.reviewer import detect_language, failed_review, review_batch
from qcr.core.schemas import Review
from qcr.core.scoring import score_band
from qcr.utils.fs import iter_files, load_source
from qcr.utils.logging_config import configure_logging

console = Console()

BAND_STYLE = {"excellent": "green", "good": "blue", "fair": "yellow", "poor": "red"}


def render_review_console(review: Review) -> None:
    style = BAND_STYLE[score_band(review.score)]
    console.print(f"\n[bold]File:[/bold] {escape(review.filename)}")
    console.print(
        f"[bold]Language:[/bold] {review.language}   "
        f"[bold]Score:[/bold] [{style}]{review.score}/100[/{style}]   "
        f"{len(review.issues)} issues • {len(review.suggestions)} suggestions"
    )
    console.print(f"[bold]Summary:[/bold] {review.summary}\n")

    rows = [("issue", f) for f in review.issues] + [("suggestion", f) for f in review.suggestions]
    if rows:
        t = Table(title="Findings", show_lines=True)
        t.add_column("Kind")
        t.add_column("Severity")
        t.add_column("Line")
        t.add_column("Rule")
        t.add_column("Message")

        for kind, f in rows:
            line = "-" if f.line is None else str(f.line)
            t.add_row(kind, f.severity, line, f.rule, escape(f.message))

        console.print(t)


def render_batch_summary(reviews: list[Review]) -> None:
    t = Table(title="Review summary")
    t.add_column("File")
    t.add_column("Score", justify="right")
    t.add_column("Issues", justify="right")
    t.add_column("Suggestions", justify="right")

    for r in reviews:
        style = BAND_STYLE[score_band(r.score)]
        t.add_row(escape(r.filename), f"[{style}]{r.score}[/{style}]", str(len(r.issues)), str(len(r.suggestions)))

    console.print(t)


def report_stem(filename: str, root: Path | None = None) -> str:
    """``src/a/index.js`` under ``src`` -> ``a_index_js``."""
    p = Path(filename)
    try:
        rel = p.relative_to(root) if root is not None else Path(p.name)
    except ValueError:
        rel = Path(p.name)
    return "_".join(rel.parts).replace(".", "_")


def write_report(review: Review, out_dir: Path, root: Path | None = None) -> Path:
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    safe_name = report_stem(review.filename, root)
    out_path = out_dir / f"{safe_name}_{stamp}.json"
    n = 1
    while out_path.exists():
        n += 1
        out_path = out_dir / f"{safe_name}_{stamp}_{n}.json"
    out_path.write_text(json.dumps(review.model_dump(), indent=2), encoding="utf-8")
    return out_path


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="qcr", description="Heuristic code quality reviewer")
    ap.add_argument("target", help="File or directory to review")
    ap.add_argument("--no-recursive", action="store_true", help="Do not scan directories recursively")
    ap.add_argument("--out", default="reports", help="Output directory for JSON reports")
    ap.add_argument("--no-save", action="store_true", help="Do not write JSON reports")
    ap.add_argument("--policy", default=settings.scoring_policy, choices=["flat", "severity"],
                    help="Scoring policy")
    ap.add_argument("--ai", action="store_true", help="Append a free-text AI review to each file")
    ap.add_argument("--model", default=settings.model, help="AI model name")
    ap.add_argument("--base-url", default=settings.base_url, help="OpenAI-compatible API base URL")
    ap.add_argument("--temperature", type=float, default=settings.temperature, help="Sampling temperature")
    ap.add_argument("--max-files", type=int, default=settings.max_files, help="Safety limit for directory scans")
    ap.add_argument("--workers", type=int, default=settings.max_workers, help="Files reviewed in parallel")
    ap.add_argument("--reject-empty", action="store_true", help="Fail empty files instead of scoring them")
    ap.add_argument("--fail-under", type=int, default=None, help="Exit 1 if any score is below this")
    ap.add_argument("--log-level", default=settings.log_level, help="DEBUG, INFO, WARNING or ERROR")
    return ap


def main(argv: list[str] | None = None) -> int:
    try:
        settings = Settings()
    except ValidationError as e:
        console.print(f"[red]Invalid QCR_* setting:[/red] {escape(str(e))}")
        raise SystemExit(2)
    args = build_parser(settings).parse_args(argv)
    configure_logging(args.log_level)

    try:
        policy = settings.scoring(args.policy)
        ai_client = (
            AIReviewClient.from_settings(
                settings,
                model=args.model,
                base_url=args.base_url,
                temperature=args.temperature,
            )
            if args.ai
            else None
        )
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(2)

    files = iter_files(args.target, recursive=not args.no_recursive)
    if not files:
        console.print("[red]No reviewable files found.[/red]")
        raise SystemExit(2)

    if len(files) > args.max_files:
        console.print(f"[red]Too many files ({len(files)}). Use --max-files or point to a smaller folder.[/red]")
        raise SystemExit(2)

    # unreadable files get their failed review now, the rest go through the batch
    slots: list[Review | None] = []
    sources = []
    for fp in files:
        try:
            sources.append(load_source(fp))
            slots.append(None)
        except AnalysisInputError as e:
            slots.append(failed_review(str(fp), detect_language(str(fp)), str(e)))

    try:
        reviewed = iter(
            review_batch(
                sources,
                policy=policy,
                ai_client=ai_client,
                reject_empty=args.reject_empty,
                max_workers=args.workers,
            )
        )
    finally:
        if ai_client is not None:
            ai_client.close()

    reviews = [slot if slot is not None else next(reviewed) for slot in slots]

    out_dir = Path(args.out)
    if not args.no_save:
        out_dir.mkdir(parents=True, exist_ok=True)
    target = Path(args.target)
    root = target if target.is_dir() else target.parent

    for review in reviews:
        render_review_console(review)
        if not args.no_save:
            out_path = write_report(review, out_dir, root)
            console.print(f"[dim]Saved:[/dim] {out_path}")

    if len(reviews) > 1:
        render_batch_summary(reviews)

    if args.fail_under is not None and any(r.score < args.fail_under for r in reviews):
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
