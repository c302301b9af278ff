"""CLI application using Typer for the adaptive qualification pipeline."""

import asyncio
import signal
from pathlib import Path
from typing import List, Optional, Tuple

import typer
from rich.console import Console
from rich.table import Table

from ..config.defaults import DEFAULT_GRADING_TOPICS, DEFAULT_SEMANTIC_RULES
from ..config.settings import settings
from ..core.models import SemanticRule
from ..exceptions import BackendConfigError
from ..llm.router import create_backend
from ..pipeline.orchestrator import CycleOrchestrator
from ..pipeline.queue import QueryQueue, QueueStatus
from ..pipeline.sinks import MemorySink
from ..qualification.events import (
    DocumentScored,
    EventBus,
    FailFastTriggered,
    FastPathActivated,
    LoggingSubscriber,
    PipelineEvent,
    QueryStarted,
)
from ..qualification.models import QualificationOutcome, QueryThresholds, SpeedupPolicy
from ..search.adapters.pubmed import PubMedSource
from ..utils.cancellation import CancellationToken
from ..utils.logging import get_logger

app = typer.Typer(
    name="ecoscholar",
    help="EcoScholar - adaptive qualification of literature search results",
    add_completion=False,
)

console = Console()
logger = get_logger(__name__)

OUTCOME_STYLES = {
    QualificationOutcome.FILTERED_OUT: "dim",
    QualificationOutcome.REJECTED: "red",
    QualificationOutcome.QUALIFIED: "green",
    QualificationOutcome.QUALIFIED_FAST_PATH: "magenta",
    QualificationOutcome.ABORTED_LOW_YIELD: "yellow",
}


def load_rule_config(path: Path) -> Tuple[List[SemanticRule], List[str]]:
    """Load semantic rules and grading topics from a YAML file.

    Expected layout::

        topics: [flavonoids, terpenoids]
        rules:
          - {id: "1", text: "...", polarity: requirement, tag: phyto}
    """
    import yaml

    data = yaml.safe_load(path.read_text()) or {}
    rules = [SemanticRule(**r) for r in data.get("rules", [])] or list(DEFAULT_SEMANTIC_RULES)
    topics = [str(t) for t in data.get("topics", [])] or list(DEFAULT_GRADING_TOPICS)
    return rules, topics


def _console_subscriber(event: PipelineEvent) -> None:
    if isinstance(event, QueryStarted):
        console.rule(f"[bold blue]{event.query}[/bold blue] records {event.start_offset}-{event.stop_offset}")
    elif isinstance(event, DocumentScored):
        rec = event.record
        style = OUTCOME_STYLES.get(rec.outcome, "white")
        extra = f" [{rec.error_tag}]" if rec.error_tag else ""
        console.print(
            f"[{style}]{rec.outcome.value:<20}[/{style}] "
            f"v={rec.score.vector_score:.2f} c={rec.score.composite_score:.2f} "
            f"yield={rec.snapshot.yield_rate:.0%} {rec.document.title[:70]}{extra}"
        )
    elif isinstance(event, FastPathActivated):
        console.print(f"[bold magenta]Fast path activated[/bold magenta] at yield {event.snapshot.yield_rate:.0%}")
    elif isinstance(event, FailFastTriggered):
        console.print(f"[bold yellow]Fail fast[/bold yellow] after {event.snapshot.processed} candidates")


@app.command()
def run(
    query: Optional[List[str]] = typer.Option(None, "--query", "-q", help="Search query (repeatable)"),
    query_file: Optional[Path] = typer.Option(None, "--query-file", help="File with queries (one per line)"),
    rules_file: Optional[Path] = typer.Option(None, "--rules", help="YAML file with semantic rules and topics"),
    start: int = typer.Option(settings.default_start_offset, "--start", help="First record offset"),
    stop: int = typer.Option(settings.default_stop_offset, "--stop", help="Stop before this record offset"),
    vector_min: float = typer.Option(settings.default_vector_min, "--vector-min", help="Query similarity threshold"),
    composite_min: float = typer.Option(settings.default_composite_min, "--composite-min", help="Composite rule threshold"),
    probability_min: float = typer.Option(settings.default_probability_min, "--probability-min", help="Discovery probability threshold (0-10)"),
    sample_size: int = typer.Option(settings.speedup_sample_size, "--sample-size", help="Candidates sampled before fast path / fail fast"),
    qualify_rate: float = typer.Option(settings.speedup_qualify_rate, "--qualify-rate", help="Target yield for the fast path"),
    fail_fast: bool = typer.Option(settings.fail_fast, "--fail-fast/--no-fail-fast", help="Abort unproductive queries"),
    provider: Optional[str] = typer.Option(None, "--provider", help="LLM backend: ollama or gemini (default from settings)"),
):
    """Run queries through scoring, speedup/fail-fast policy and judgment."""
    queries: List[str] = list(query or [])
    if query_file and query_file.exists():
        queries += [line.strip() for line in query_file.read_text().splitlines() if line.strip()]
    if not queries:
        console.print("[red]Error: Must provide --query or --query-file[/red]")
        raise typer.Exit(1)
    rules, topics = load_rule_config(rules_file) if rules_file else (list(DEFAULT_SEMANTIC_RULES), list(DEFAULT_GRADING_TOPICS))
    thresholds = QueryThresholds(vector_min=vector_min, composite_min=composite_min, probability_min=probability_min)
    policy = SpeedupPolicy(sample_size=sample_size, target_qualify_rate=qualify_rate, fail_fast=fail_fast)
    console.print(f"[bold blue]Running {len(queries)} queries[/bold blue] with {len(rules)} semantic rules")
    try:
        asyncio.run(_run(queries, rules, topics, thresholds, policy, start, stop, provider))
    except BackendConfigError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        raise typer.Exit(1)


async def _run(
    queries: List[str],
    rules: List[SemanticRule],
    topics: List[str],
    thresholds: QueryThresholds,
    policy: SpeedupPolicy,
    start: int,
    stop: int,
    provider: Optional[str] = None,
) -> None:
    backend = create_backend(provider)
    cancel = CancellationToken()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel.cancel)
    except NotImplementedError:
        logger.debug("Signal handlers unsupported; Ctrl+C will abort without cleanup")

    bus = EventBus()
    bus.subscribe(LoggingSubscriber())
    bus.subscribe(_console_subscriber)
    sink = MemorySink()

    async with backend, PubMedSource() as source:
        orchestrator = await CycleOrchestrator.build(
            source, backend, backend, rules, topics, sink, policy=policy, bus=bus
        )
        queue = QueryQueue(orchestrator, defaults=thresholds)
        for q in queries:
            queue.add(q, start_offset=start, stop_offset=stop)
        await queue.run(cancel)

    table = Table(title="Cycle Summary")
    table.add_column("Query", style="cyan")
    table.add_column("Status", style="magenta")
    table.add_column("Processed", justify="right")
    table.add_column("Qualified", style="green", justify="right")
    table.add_column("Yield", justify="right")
    table.add_column("Resume at", justify="right")
    for item in queue.items:
        s = item.summary
        table.add_row(
            item.query,
            item.status.value,
            str(s.total_processed) if s else "-",
            str(s.total_qualified) if s else "-",
            item.yield_label or "-",
            str(item.start_offset) if item.status != QueueStatus.COMPLETED else "-",
        )
    console.print(table)
    run_stats = orchestrator.tracker.run
    console.print(
        f"Scanned {run_stats.total_scanned}, judged {run_stats.judged}, "
        f"qualified {run_stats.qualified} ({run_stats.oracle_calls_avoided} oracle calls avoided)"
    )


@app.command()
def rules(
    rules_file: Optional[Path] = typer.Option(None, "--rules", help="YAML file with semantic rules and topics"),
) -> None:
    """List the semantic rules and grading topics that a run would use."""
    rule_list, topics = load_rule_config(rules_file) if rules_file else (DEFAULT_SEMANTIC_RULES, DEFAULT_GRADING_TOPICS)
    table = Table(title="Semantic Rules")
    table.add_column("ID", style="cyan")
    table.add_column("Polarity", style="magenta")
    table.add_column("Tag")
    table.add_column("Text")
    for rule in rule_list:
        if rule.enabled:
            table.add_row(rule.id, rule.polarity.value, rule.tag, rule.text)
    console.print(table)
    console.print(f"[bold]Grading topics:[/bold] {', '.join(topics)}")


@app.command()
def models(
    provider: Optional[str] = typer.Option(None, "--provider", help="LLM backend: ollama or gemini (default from settings)"),
) -> None:
    """Check the backend connection and list the models it offers."""
    async def _list():
        async with create_backend(provider) as client:
            return await client.list_models()

    try:
        installed = asyncio.run(_list())
    except BackendConfigError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        raise typer.Exit(1)
    except Exception as exc:
        console.print(f"[red]Could not reach the {provider or settings.llm_provider} backend: {exc}[/red]")
        raise typer.Exit(1)
    for entry in installed:
        console.print(f"- {entry.get('name', '?')}")


if __name__ == "__main__":
    app()
