#!/usr/bin/env python3
"""One-shot command line grading of a single piece of work."""

import asyncio
import base64
import logging
import mimetypes
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from rubriccheck.evidence import build_sources, locatability
from rubriccheck.evidence.locator import MIN_EVIDENCE_LENGTH
from rubriccheck.grading.grader import RubricGrader
from rubriccheck.grading.models import AnalysisResult, GradingRequest, Status, UploadedFile
from rubriccheck.grading.overrides import apply_override, live_metrics
from rubriccheck.grading.rubric_validator import check_rubric_quality
from rubriccheck.libs.config_loader import get_config, load_all_configs
from rubriccheck.libs.errors import QuotaExceeded, RubricCheckError

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
LOG = logging.getLogger(__name__)

console = Console()

STATUS_STYLES = {Status.MET: "green", Status.WEAK: "yellow", Status.MISSING: "red"}


def read_upload(path: Path) -> UploadedFile:
    mime_type, _ = mimetypes.guess_type(path.name)
    return UploadedFile(
        name=path.name,
        mime_type=mime_type or "application/octet-stream",
        data=base64.b64encode(path.read_bytes()).decode("ascii"),
    )


def parse_overrides(values):
    """Split NAME=STATUS pairs."""
    overrides = []
    for value in values:
        name, sep, status = value.rpartition("=")
        if not sep or not name.strip():
            raise click.BadParameter(f"Expected NAME=STATUS, got {value!r}", param_hint="--override")
        try:
            overrides.append((name.strip(), Status(status.strip().lower())))
        except ValueError:
            raise click.BadParameter(f"Unknown status {status!r}", param_hint="--override")
    return overrides


def apply_named_overrides(result: AnalysisResult, overrides) -> AnalysisResult:
    for name, status in overrides:
        matches = [i for i, c in enumerate(result.criteria) if c.criterion.lower() == name.lower()]
        if not matches:
            raise click.BadParameter(f"No criterion named {name!r}", param_hint="--override")
        result = apply_override(result, matches[0], status)
    return result


def render(result: AnalysisResult, request: GradingRequest,
           min_evidence_length: int = MIN_EVIDENCE_LENGTH) -> None:
    sources = build_sources(request.submission_text, request.submission_files)
    found = locatability(result.criteria, sources, min_evidence_length)

    table = Table(title="Rubric Check")
    table.add_column("#", justify="right")
    table.add_column("Criterion", style="cyan")
    table.add_column("Status")
    table.add_column("Evidence", justify="center")
    table.add_column("Fix")

    for i, (criterion, locatable) in enumerate(zip(result.criteria, found)):
        status = criterion.effective_status
        label = f"[{STATUS_STYLES[status]}]{status.value}[/{STATUS_STYLES[status]}]"
        if criterion.user_status is not None:
            label += f" (was {criterion.status.value})"
        table.add_row(
            str(i + 1),
            criterion.criterion,
            label,
            "found" if locatable else "-",
            criterion.exact_fix if status != Status.MET else "",
        )
    console.print(table)

    tally = live_metrics(result)
    console.print(f"\n[bold]Score:[/bold] {tally.score}  "
                  f"(met {tally.met}, weak {tally.weak}, missing {tally.missing})")
    analysis = result.summary.ai_analysis
    console.print(f"[bold]AI likelihood:[/bold] {result.summary.ai_score} "
                  f"({analysis.risk_level}) {analysis.verdict_summary}")

    if result.summary.top_fixes:
        console.print("\n[bold cyan]Top fixes:[/bold cyan]")
        for fix in result.summary.top_fixes:
            console.print(f"  - [cyan]{fix.fix}[/cyan]: {fix.reason}")


@click.command()
@click.option(
    '--rubric',
    '-r',
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help='Rubric or requirements as a text file'
)
@click.option(
    '--submission',
    '-s',
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help='The work to check, as a text file'
)
@click.option(
    '--attach',
    '-a',
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    multiple=True,
    help='Extra submission file (PDF, image, text); may be repeated'
)
@click.option('--strict', is_flag=True, help='Grade without partial credit for vague work')
@click.option('--work-type', default='General', show_default=True, help='Kind of work being checked')
@click.option('--explanation', '-e', default='', help='Context the student wants the grader to know')
@click.option(
    '--override',
    'override_values',
    multiple=True,
    help='Manually set a criterion status, e.g. "Thesis Statement=met"; may be repeated'
)
@click.option('--model', '-m', default=None, help='OpenAI model to use (overrides config value)')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
def main(rubric, submission, attach, strict, work_type, explanation, override_values, model, verbose):
    """
    Check one piece of work against a rubric.

    Example:
        rubriccheck-grade -r rubric.txt -s essay.txt --override "Mechanics=met"
    """
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    overrides = parse_overrides(override_values)
    if submission is None and not attach:
        raise click.UsageError("Provide --submission and/or at least one --attach file")

    rubric_text = rubric.read_text(encoding="utf-8")
    quality = check_rubric_quality(rubric_text)
    if quality.is_vague:
        console.print(f"[yellow]Rubric warning:[/yellow] {', '.join(quality.reasons)}")

    request = GradingRequest(
        rubric_text=rubric_text,
        submission_text=submission.read_text(encoding="utf-8") if submission else "",
        submission_files=[read_upload(p) for p in attach],
        explanation=explanation,
        strict=strict,
        work_type=work_type,
    )

    configs = load_all_configs()
    if model:
        configs.setdefault('openai', {})['model'] = model

    try:
        grader = RubricGrader(configs)
    except KeyError as e:
        console.print(f"[red]Failed to initialize grader:[/red] {e}")
        sys.exit(1)

    console.print("\n[yellow]Checking your work...[/yellow]")
    try:
        result = asyncio.run(grader.analyze_async(request))
    except QuotaExceeded as e:
        wait = e.retry_after if e.retry_after is not None else 60
        console.print(f"[red]Rate limited.[/red] Try again in {wait:.0f} seconds.")
        sys.exit(1)
    except RubricCheckError as e:
        LOG.error(f"Grading failed: {e}")
        console.print("[red]Something went wrong. Check your connection.[/red]")
        sys.exit(1)

    result = apply_named_overrides(result, overrides)
    render(result, request, get_config('evidence.min_length', configs, default=MIN_EVIDENCE_LENGTH))


if __name__ == '__main__':
    main()
