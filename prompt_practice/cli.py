"""
Prompt Practice CLI

Command-line interface for submitting prompts and inspecting evaluations.

Usage:
    # Submit a prompt to one model
    python -m prompt_practice submit --lab practice-basics -m local-stub "Explain photosynthesis"

    # Compare models
    python -m prompt_practice submit --lab compare-basics -m llama3.1-8b -m mistral-7b "Explain photosynthesis"

    # Poll an attempt
    python -m prompt_practice status lq3k9z1a-x7b2c9

    # Run models without storing an attempt
    python -m prompt_practice generate -m local-stub -m mistral-7b "Explain photosynthesis"

    # Score a prompt/response pair directly
    python -m prompt_practice evaluate --prompt "Explain photosynthesis" --response "Plants convert light..."
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.table import Table

from utils.exceptions import PromptPracticeError, ProviderError, StorageError, ValidationError
from utils.logging_config import setup_logging
from utils.retry import default_should_retry, retry_with_backoff, with_retry

console = Console()
logger = logging.getLogger(__name__)


def _load_settings(args: argparse.Namespace):
    from .settings import PipelineSettings

    if args.config:
        import config

        return PipelineSettings.from_yaml(Path(args.config), api_key=config.get_api_key())
    return PipelineSettings.from_env()


def _print_status(status: Dict[str, Any]) -> None:
    color = {
        "success": "green",
        "partial": "yellow",
        "timeout": "yellow",
        "error": "red",
    }.get(status["status"], "cyan")
    console.print(f"[bold]Attempt:[/bold] {status['attemptId']}")
    console.print(f"[bold]Status:[/bold] [{color}]{status['status']}[/{color}]")

    error = status.get("error")
    if error:
        console.print(
            f"[red]{error['stage']} / {error['code']}:[/red] {error['message']}"
            f"{' (retryable)' if error['retryable'] else ''}"
        )

    results = status.get("results") or []
    if not results:
        return

    table = Table(title="Results")
    table.add_column("Model", style="cyan")
    table.add_column("Source", style="magenta")
    table.add_column("Clarity", style="green")
    table.add_column("Completeness", style="green")
    table.add_column("Total", style="bold green")
    table.add_column("Latency", style="yellow")
    table.add_column("Tokens", style="blue")
    for r in results:
        scores = r.get("scores") or {}
        table.add_row(
            r["modelId"],
            r["source"],
            str(scores.get("clarity", "-")),
            str(scores.get("completeness", "-")),
            f"{scores.get('total', '-')}/10",
            f"{r['latency']}ms",
            str(r["tokenCount"]),
        )
    console.print(table)

    for r in results:
        console.print(f"\n[bold cyan]{r['modelId']}[/bold cyan]")
        console.print(r["response"])
        feedback = r.get("feedback") or {}
        if feedback.get("explanation"):
            console.print("[dim]───────────────────────────────────────[/dim]")
            console.print(feedback["explanation"])


async def cmd_submit(args: argparse.Namespace) -> int:
    """Submit a prompt and wait for its evaluation."""
    from .attempts import EvaluationPipeline

    settings = _load_settings(args)
    pipeline = EvaluationPipeline(settings)
    body: Dict[str, Any] = {
        "labId": args.lab,
        "userPrompt": args.prompt,
        "models": args.models or [],
    }
    if args.system:
        body["systemPrompt"] = args.system

    def on_retry(error: BaseException, attempt: int) -> None:
        console.print(f"[yellow]Retrying submission (attempt {attempt}): {error}[/yellow]")

    try:
        created = await retry_with_backoff(
            lambda: pipeline.submit(body, timeout=args.timeout),
            config=settings.retry,
            should_retry=default_should_retry,
            on_retry=on_retry,
        )
    except ValidationError as e:
        console.print(f"[red]Invalid submission ({e.attempt_id}):[/red]")
        for message in e.errors:
            console.print(f"  - {message}")
        return 1
    except PromptPracticeError as e:
        attempt_id = getattr(e, "attempt_id", None)
        console.print(f"[red]Error{f' ({attempt_id})' if attempt_id else ''}: {e}[/red]")
        return 1

    if args.wait_late:
        await pipeline.drain()

    status = pipeline.get_status(created.attempt_id)
    if args.json:
        print(json.dumps(status, indent=2))
    else:
        _print_status(status)
    return 0 if status["status"] in ("success", "partial") else 1


async def cmd_status(args: argparse.Namespace) -> int:
    """Show the stored status of an attempt."""
    from .attempts import EvaluationPipeline

    pipeline = EvaluationPipeline(_load_settings(args))
    try:
        status = pipeline.get_status(args.attempt_id)
    except PromptPracticeError as e:
        console.print(f"[red]{e}[/red]")
        return 1

    if args.json:
        print(json.dumps(status, indent=2))
    else:
        _print_status(status)
    return 0


async def cmd_evaluate(args: argparse.Namespace) -> int:
    """Score a prompt/response pair without calling a model."""
    from .evaluation import EvaluationEngine

    response = args.response
    if response is None:
        response = sys.stdin.read()

    engine = EvaluationEngine(rubric_path=Path(args.rubric) if args.rubric else None)
    result = engine.evaluate_text(args.prompt, response, args.rubric_version)

    if args.json:
        print(json.dumps({"scores": result.scores_dict(), "feedback": result.feedback_dict()}, indent=2))
        return 0

    console.print(f"[green]Clarity:[/green] {result.breakdown.clarity}/5")
    console.print(f"[green]Completeness:[/green] {result.breakdown.completeness}/5")
    console.print(f"[bold green]Total:[/bold green] {result.score}/10")
    console.print(f"[dim]Rubric: {result.rubric_version or 'heuristic only'}[/dim]\n")
    console.print(result.notes)
    return 0


async def cmd_generate(args: argparse.Namespace) -> int:
    """Run models on a prompt without storing or scoring an attempt."""
    from .providers import Dispatcher

    dispatcher = Dispatcher.from_settings(_load_settings(args))
    results = await dispatcher.dispatch_many(args.models, args.prompt, args.system)

    if args.json:
        print(json.dumps({model_id: r.to_dict() for model_id, r in results.items()}, indent=2))
        return 0

    for model_id, result in results.items():
        console.print(
            f"\n[bold cyan]{model_id}[/bold cyan] "
            f"[dim]({result.source.value}, {result.latency_ms}ms, {result.token_count} tokens)[/dim]"
        )
        console.print(result.text)
    return 0


async def cmd_models(args: argparse.Namespace) -> int:
    """List registered models and where each would be served from."""
    from .providers import MODEL_REGISTRY, Dispatcher, describe_model_status

    settings = _load_settings(args)
    dispatcher = Dispatcher.from_settings(settings)

    table = Table(title="Models")
    table.add_column("Model", style="cyan")
    table.add_column("Name")
    table.add_column("Kind", style="magenta")
    table.add_column("Serves from", style="green")
    table.add_column("Status", style="dim")

    for descriptor in MODEL_REGISTRY:
        status = describe_model_status(
            descriptor.id,
            settings.api_key,
            dispatcher.rate_limiter,
            runtime_configured=dispatcher.runtime is not None,
        )
        table.add_row(
            descriptor.id,
            descriptor.display_name,
            descriptor.source.value,
            status["source"],
            status["description"],
        )
    console.print(table)

    if dispatcher.runtime is not None and args.check_runtime:

        @with_retry(settings.retry)
        async def runtime_tags() -> List[str]:
            return await dispatcher.runtime.list_models()

        try:
            tags = await runtime_tags()
        except ProviderError as e:
            console.print(f"[yellow]Local runtime configured but not reachable: {e}[/yellow]")
            return 1
        console.print("[green]Local runtime reachable[/green]")
        console.print(f"[bold]Pulled models:[/bold] {', '.join(tags) if tags else 'none'}")
    return 0


async def cmd_rate_limit(args: argparse.Namespace) -> int:
    """Show the hosted rate limiter state."""
    from .providers import Dispatcher

    settings = _load_settings(args)
    status = Dispatcher.from_settings(settings).rate_limiter.get_status()
    if args.json:
        print(json.dumps(status, indent=2))
        return 0

    state = "[red]limited[/red]" if status["isLimited"] else "[green]available[/green]"
    console.print(f"[bold]Hosted calls:[/bold] {state}")
    console.print(f"[bold]Requests:[/bold] {status['requestCount']}/{status['maxRequests']}")
    if status["resetTime"]:
        console.print(f"[bold]Resets at:[/bold] {status['resetTime']:.0f}")
    return 0


async def cmd_report(args: argparse.Namespace) -> int:
    """Render a markdown report for a stored attempt."""
    from .attempts import AttemptStore
    from .evaluation.report import EvaluationReportGenerator

    settings = _load_settings(args)
    store = AttemptStore(settings.data_dir)
    try:
        attempt = store.read_attempt(args.attempt_id)
        evaluation = store.read_evaluation(args.attempt_id)
    except (ValidationError, StorageError) as e:
        console.print(f"[red]{e}[/red]")
        return 1
    if attempt is None or evaluation is None:
        console.print(f"[red]No completed attempt found for {args.attempt_id}[/red]")
        return 1

    generator = EvaluationReportGenerator(report_dir=Path(args.report_dir))
    report_path = generator.generate(attempt, evaluation)
    console.print(f"[green]Report saved to {report_path}[/green]")
    return 0


def main(argv: Optional[list] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="prompt-practice",
        description="Prompt practice: run prompts against models and score the responses",
    )
    parser.add_argument("--config", "-c", help="Path to settings YAML")
    parser.add_argument("--log-level", default=None, help="Log level (DEBUG, INFO, WARNING)")
    parser.add_argument("--log-to-file", action="store_true", help="Also write logs under the state dir")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # submit
    submit_parser = subparsers.add_parser("submit", help="Submit a prompt for evaluation")
    submit_parser.add_argument("prompt", help="User prompt")
    submit_parser.add_argument("--lab", "-l", default="practice-basics", help="Lab id")
    submit_parser.add_argument(
        "--model", "-m", dest="models", action="append", help="Model id (repeatable)"
    )
    submit_parser.add_argument("--system", "-s", help="System prompt")
    submit_parser.add_argument("--timeout", type=float, help="Attempt timeout in seconds")
    submit_parser.add_argument(
        "--wait-late", action="store_true", help="Wait for models that outlive the timeout"
    )
    submit_parser.add_argument("--json", action="store_true", help="Print the poll JSON")

    # status
    status_parser = subparsers.add_parser("status", help="Show an attempt's status")
    status_parser.add_argument("attempt_id", help="Attempt id")
    status_parser.add_argument("--json", action="store_true", help="Print the poll JSON")

    # evaluate
    eval_parser = subparsers.add_parser("evaluate", help="Score a prompt/response pair")
    eval_parser.add_argument("--prompt", "-p", required=True, help="User prompt")
    eval_parser.add_argument("--response", "-r", help="Model response (stdin when omitted)")
    eval_parser.add_argument("--rubric", help="Path to a rubric markdown file")
    eval_parser.add_argument("--rubric-version", help="Rubric version to require")
    eval_parser.add_argument("--json", action="store_true", help="Print scores and feedback as JSON")

    # generate
    gen_parser = subparsers.add_parser("generate", help="Run models without storing an attempt")
    gen_parser.add_argument("prompt", help="User prompt")
    gen_parser.add_argument(
        "--model", "-m", dest="models", action="append", required=True, help="Model id (repeatable)"
    )
    gen_parser.add_argument("--system", "-s", help="System prompt")
    gen_parser.add_argument("--json", action="store_true", help="Print results as JSON")

    # models
    models_parser = subparsers.add_parser("models", help="List registered models")
    models_parser.add_argument(
        "--check-runtime", action="store_true", help="Ping the local runtime if configured"
    )

    # rate-limit
    rate_parser = subparsers.add_parser("rate-limit", help="Show hosted rate limit state")
    rate_parser.add_argument("--json", action="store_true", help="Print as JSON")

    # report
    report_parser = subparsers.add_parser("report", help="Write a markdown report for an attempt")
    report_parser.add_argument("attempt_id", help="Attempt id")
    report_parser.add_argument("--report-dir", default="./reports", help="Report output directory")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    import config

    if args.log_to_file:
        config.validate_config()
    setup_logging(
        level=args.log_level or ("DEBUG" if config.DEBUG else config.LOG_LEVEL),
        log_dir=config.LOG_DIR if args.log_to_file else None,
    )

    commands = {
        "submit": cmd_submit,
        "status": cmd_status,
        "evaluate": cmd_evaluate,
        "generate": cmd_generate,
        "models": cmd_models,
        "rate-limit": cmd_rate_limit,
        "report": cmd_report,
    }
    try:
        return asyncio.run(commands[args.command](args))
    except PromptPracticeError as e:
        logger.error(f"{args.command} failed: {e}")
        console.print(f"[red]Error: {e}[/red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
