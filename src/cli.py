"""CLI for driving submission lifecycles against a local JSON store."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Annotated, Optional, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from creatorflow.config import CreatorflowConfig, load_config, merge_cli_overrides
from creatorflow.errors import LifecycleError, PaymentInitiationFailed
from creatorflow.runtime import build_engine
from creatorflow.submissions.engine import (
    ReceivedWithProof,
    SubmissionLifecycleEngine,
)
from creatorflow.submissions.ledger import RevisionLedger
from creatorflow.submissions.models import ContentDistributionModel, Project, Submission

app = typer.Typer(
    name="creatorflow",
    help="Manage creator submission lifecycles: review, proof, and payment.",
)

console = Console()

T = TypeVar("T")


class _State:
    config: CreatorflowConfig = CreatorflowConfig()
    engine: SubmissionLifecycleEngine | None = None

    def get_engine(self) -> SubmissionLifecycleEngine:
        if self.engine is None:
            self.engine = build_engine(self.config)
        return self.engine


state = _State()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from creatorflow import __version__

        console.print(f"creatorflow {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to a .creatorflow.toml file."),
    ] = None,
    data_dir: Annotated[
        Optional[Path],
        typer.Option("--data-dir", help="Directory holding the submission store."),
    ] = None,
    processor: Annotated[
        Optional[str],
        typer.Option("--processor", help="Payment processor: manual or stripe."),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Log lifecycle transitions."),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """creatorflow - creator submission lifecycle."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    config = load_config(config_path)
    state.config = merge_cli_overrides(
        config,
        data_dir=str(data_dir) if data_dir is not None else None,
        processor=processor,
    )
    state.engine = None


def _run(operation: Callable[[], T]) -> T:
    """Run an engine operation, turning lifecycle errors into a clean exit."""
    try:
        return operation()
    except PaymentInitiationFailed as exc:
        console.print(f"[yellow]Payment not initiated:[/yellow] {exc}")
        if exc.submission is not None:
            console.print(f"Submission {exc.submission.id} is {exc.submission.status.value}")
        raise typer.Exit(1)
    except LifecycleError as exc:
        console.print(f"[red]Error:[/red] {type(exc).__name__}: {exc}")
        raise typer.Exit(1)


def _print_submission(submission: Submission) -> None:
    console.print(
        f"[green]{submission.id}[/green] {submission.wire_status.value} "
        f"(v{submission.version}, revisions {submission.revisions_used}/"
        f"{submission.max_revisions})"
    )


@app.command("add-project")
def add_project(
    project_id: Annotated[str, typer.Argument(help="Project identifier.")],
    model: Annotated[
        ContentDistributionModel,
        typer.Option("--model", "-m", help="Content distribution model."),
    ] = ContentDistributionModel.DIRECT_HANDOFF,
    max_revisions: Annotated[
        Optional[int],
        typer.Option("--max-revisions", help="Revision cap for submissions."),
    ] = None,
    product_link: Annotated[
        str, typer.Option("--product-link", help="Product URL for affiliate links.")
    ] = "",
    brand_id: Annotated[str, typer.Option("--brand", help="Owning brand.")] = "",
) -> None:
    """Register a project that creators can submit to."""
    engine = state.get_engine()
    project = Project(
        id=project_id,
        brand_id=brand_id,
        content_distribution_model=model,
        max_revisions=(
            max_revisions
            if max_revisions is not None
            else state.config.review.default_max_revisions
        ),
        product_link=product_link,
    )
    _run(lambda: engine.repository.put_project(project))
    console.print(f"[green]Project {project.id}[/green] ({project.content_distribution_model.value})")


@app.command()
def submit(
    creator_id: Annotated[str, typer.Argument(help="Creator identifier.")],
    project_id: Annotated[str, typer.Argument(help="Project identifier.")],
    asset_ref: Annotated[str, typer.Argument(help="Reference to the uploaded media.")],
) -> None:
    """Create a submission from a creator's upload."""
    engine = state.get_engine()
    _print_submission(_run(lambda: engine.submit(creator_id, project_id, asset_ref)))


@app.command()
def resubmit(
    submission_id: Annotated[str, typer.Argument(help="Submission identifier.")],
    asset_ref: Annotated[str, typer.Argument(help="Reference to the revised media.")],
) -> None:
    """Upload a revised asset after a revision request."""
    engine = state.get_engine()
    _print_submission(_run(lambda: engine.resubmit(submission_id, asset_ref)))


@app.command()
def review(
    submission_id: Annotated[str, typer.Argument(help="Submission identifier.")],
    approve: Annotated[
        bool, typer.Option("--approve/--reject", help="Approve or request a revision.")
    ] = True,
    feedback: Annotated[str, typer.Option("--feedback", "-f", help="Reviewer feedback.")] = "",
    issue: Annotated[
        Optional[list[str]], typer.Option("--issue", "-i", help="Issue tag (repeatable).")
    ] = None,
    amount: Annotated[
        Optional[str], typer.Option("--amount", help="Payment amount to initiate on approval.")
    ] = None,
    reviewer: Annotated[str, typer.Option("--by", help="Reviewer name.")] = "brand",
) -> None:
    """Approve a submission or request a revision."""
    engine = state.get_engine()
    submission = _run(
        lambda: engine.review(
            submission_id,
            approve,
            feedback,
            issue or [],
            amount=amount,
            reviewer=reviewer,
        )
    )
    _print_submission(submission)
    if submission.affiliate_link:
        console.print(f"Affiliate link: {submission.affiliate_link}")


@app.command("request-proof")
def request_proof(
    submission_id: Annotated[str, typer.Argument(help="Submission identifier.")],
) -> None:
    """Request the distribution proof and try fetching it immediately."""
    engine = state.get_engine()
    result = _run(lambda: engine.request_proof(submission_id))
    _print_submission(result.submission)
    if isinstance(result, ReceivedWithProof):
        console.print(f"Proof received: {result.proof}")


@app.command("poll-proof")
def poll_proof(
    submission_id: Annotated[str, typer.Argument(help="Submission identifier.")],
) -> None:
    """Retry fetching an outstanding proof."""
    engine = state.get_engine()
    result = _run(lambda: engine.poll_proof(submission_id))
    _print_submission(result.submission)
    if not isinstance(result, ReceivedWithProof):
        console.print("[yellow]Proof not available yet.[/yellow]")


@app.command("submit-proof")
def submit_proof(
    submission_id: Annotated[str, typer.Argument(help="Submission identifier.")],
    proof: Annotated[str, typer.Argument(help="Spark code or posted link.")],
) -> None:
    """Hand in a Spark code or posted TikTok link."""
    engine = state.get_engine()
    _print_submission(_run(lambda: engine.submit_proof(submission_id, proof)))


@app.command("verify-proof")
def verify_proof(
    submission_id: Annotated[str, typer.Argument(help="Submission identifier.")],
    verified_by: Annotated[str, typer.Option("--by", help="Who checked the proof.")] = "brand",
) -> None:
    """Confirm the received proof; the asset becomes downloadable."""
    engine = state.get_engine()
    _print_submission(_run(lambda: engine.verify_proof(submission_id, verified_by=verified_by)))


@app.command("new-proof")
def new_proof(
    submission_id: Annotated[str, typer.Argument(help="Submission identifier.")],
) -> None:
    """Discard the current proof and request a new one."""
    engine = state.get_engine()
    _print_submission(_run(lambda: engine.request_new_proof(submission_id)))


@app.command()
def pay(
    submission_id: Annotated[str, typer.Argument(help="Submission identifier.")],
    amount: Annotated[str, typer.Argument(help="Amount to pay the creator.")],
) -> None:
    """Initiate (or retry initiating) payment for an approved submission."""
    engine = state.get_engine()
    submission = _run(lambda: engine.initiate_payment(submission_id, amount))
    _print_submission(submission)
    console.print(f"Payment intent: {submission.payment_intent_id}")


def _active_intent(engine: SubmissionLifecycleEngine, submission_id: str) -> str:
    submission = _run(lambda: engine.get(submission_id))
    if not submission.payment_intent_id:
        console.print(f"[red]Error:[/red] {submission_id} has no payment intent")
        raise typer.Exit(1)
    return submission.payment_intent_id


@app.command("confirm-payment")
def confirm_payment(
    submission_id: Annotated[str, typer.Argument(help="Submission identifier.")],
) -> None:
    """Mark the submission's payment intent as confirmed (manual payouts)."""
    engine = state.get_engine()
    intent_id = _active_intent(engine, submission_id)
    _run(lambda: engine.payments.confirm(intent_id))
    _print_submission(_run(lambda: engine.get(submission_id)))


@app.command("fail-payment")
def fail_payment(
    submission_id: Annotated[str, typer.Argument(help="Submission identifier.")],
    reason: Annotated[str, typer.Option("--reason", help="Why the payment failed.")] = "",
) -> None:
    """Mark the submission's payment intent as failed so it can be retried."""
    engine = state.get_engine()
    intent_id = _active_intent(engine, submission_id)
    _run(lambda: engine.payments.fail(intent_id, reason))
    _print_submission(_run(lambda: engine.get(submission_id)))


@app.command("stripe-webhook")
def stripe_webhook(
    payload_file: Annotated[Path, typer.Argument(help="Raw webhook request body.")],
    signature: Annotated[
        str, typer.Option("--signature", "-s", help="Stripe-Signature header value.")
    ],
) -> None:
    """Apply a Stripe payment_intent webhook to the tracked intents."""
    from creatorflow.integrations.stripe import handle_webhook_event, parse_webhook_event

    secret = state.config.payments.stripe_webhook_secret
    if not secret:
        console.print("[red]Error:[/red] STRIPE_WEBHOOK_SECRET is not set")
        raise typer.Exit(1)
    if not payload_file.exists():
        console.print(f"[red]Error:[/red] File not found: {payload_file}")
        raise typer.Exit(1)

    engine = state.get_engine()
    payload = payload_file.read_bytes()
    event = _run(lambda: parse_webhook_event(payload, signature, secret))
    intent = _run(lambda: handle_webhook_event(event, engine.payments))
    if intent is None:
        console.print(f"[yellow]Ignored {event.type} for {event.intent_id}[/yellow]")
        return
    console.print(f"[green]Intent {intent.id}[/green] {intent.status.value}")


@app.command()
def status(
    submission_id: Annotated[str, typer.Argument(help="Submission identifier.")],
    as_json: Annotated[bool, typer.Option("--json", help="Print as JSON.")] = False,
) -> None:
    """Show a submission's lifecycle status."""
    engine = state.get_engine()
    view = _run(lambda: engine.get_status(submission_id))
    if as_json:
        typer.echo(json.dumps(view.model_dump(mode="json"), indent=2))
        return

    latest = _run(lambda: engine.ledger(submission_id)).latest()
    table = Table(title=f"Submission {view.submission_id}")
    table.add_column("Field")
    table.add_column("Value")
    table.add_row("Status", view.wire_status.value)
    table.add_row("Model", view.content_distribution_model.value)
    table.add_row(
        "Revisions",
        f"{view.revisions_used} used, {view.revisions_remaining} remaining",
    )
    table.add_row("Last review", RevisionLedger.format_entry(latest) if latest else "-")
    table.add_row("Ready for download", "yes" if view.ready_for_download else "no")
    table.add_row("Proof", view.proof or "-")
    table.add_row("Affiliate link", view.affiliate_link or "-")
    table.add_row("Payment intent", view.payment_intent_id or "-")
    table.add_row("Version", str(view.version))
    console.print(table)


@app.command()
def history(
    submission_id: Annotated[str, typer.Argument(help="Submission identifier.")],
) -> None:
    """Show the review history of a submission."""
    engine = state.get_engine()
    records = _run(lambda: engine.get_history(submission_id))
    if not records:
        console.print("[yellow]No reviews yet.[/yellow]")
        return
    for record in records:
        when = record.created_at.strftime("%Y-%m-%d %H:%M")
        console.print(f"{when}  {RevisionLedger.format_entry(record)}  [dim]({record.reviewer})[/dim]")


@app.command("list")
def list_cmd(
    project_id: Annotated[
        Optional[str], typer.Option("--project", "-p", help="Filter by project.")
    ] = None,
) -> None:
    """List submissions."""
    engine = state.get_engine()
    submissions = engine.repository.list_submissions(project_id)
    if not submissions:
        console.print("[yellow]No submissions found.[/yellow]")
        return
    table = Table(title="Submissions")
    for column in ("ID", "Project", "Creator", "Status", "Revisions"):
        table.add_column(column)
    for s in sorted(submissions, key=lambda s: s.created_at):
        table.add_row(
            s.id,
            s.project_id,
            s.creator_id,
            s.wire_status.value,
            f"{s.revisions_used}/{s.max_revisions}",
        )
    console.print(table)


if __name__ == "__main__":
    app()
