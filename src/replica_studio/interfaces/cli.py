"""Command-line interface for provisioning replicas and feeding them knowledge.

Commands:
- configure: Store the organization secret and create a user id
- info: Show configuration
- replica: List, show and create replicas
- kb: Add text, listings, files and URLs; list, delete and watch items
- chat: Talk to a replica
"""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.live import Live
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from replica_studio.config.loader import get_default_config_path, load_config
from replica_studio.config.schema import AppConfig
from replica_studio.core.submitters import SubmissionFailure, SubmissionResult
from replica_studio.core.tracker import KnowledgeTracker
from replica_studio.entities.knowledge import KnowledgeItem, StatusOutcome, status_badge
from replica_studio.entities.replica import ReplicaDraft
from replica_studio.entities.upload import FileUpload
from replica_studio.gateway.base import ConfigurationError, SlugConflictError
from replica_studio.observability.logging import configure_from_config, get_logger
from replica_studio.observability.notifications import Notification, NotificationLevel, Notifier
from replica_studio.service.workspace import Workspace, open_workspace

app = typer.Typer(
    name="replica-studio",
    help="Provision hosted AI replicas and feed them knowledge",
    add_completion=False,
)

console = Console()
logger = get_logger(__name__)

CHAT_EXIT_WORDS = {"exit", "quit", ":q"}


class RichNotifier(Notifier):
    """Prints notifications as one-line toasts."""

    def __init__(self, target: Console = console) -> None:
        self.console = target

    def notify(self, notification: Notification) -> None:
        if notification.level == NotificationLevel.SUCCESS:
            self.console.print(f"[green]✓[/green] {escape(notification.message)}")
        else:
            self.console.print(f"[red]✗[/red] {escape(notification.message)}")


def _configuration_notice(message: str) -> None:
    console.print(
        Panel(
            f"{message}\n\nRun [bold]replica-studio configure <SECRET>[/bold] with your Sensay API secret.",
            title="Configuration required",
            border_style="red",
        )
    )


async def _open_configured(config: AppConfig) -> Workspace:
    """Open a workspace, blocking with a notice if no secret is stored."""
    workspace = await open_workspace(config, RichNotifier())
    if not workspace.session.configured:
        await workspace.close()
        _configuration_notice("No API secret is configured.")
        raise typer.Exit(1)
    return workspace


def _submission_message(result: SubmissionResult) -> str:
    if result.accepted:
        return f"Accepted for processing: {escape(result.title or result.kind.value)}"
    messages = {
        SubmissionFailure.EMPTY_CONTENT: "Nothing to submit: content is empty.",
        SubmissionFailure.INVALID_INPUT: f"Invalid input: {escape(result.detail or '')}",
        SubmissionFailure.REJECTED: "The platform did not accept the submission.",
        SubmissionFailure.UPLOAD_URL_UNAVAILABLE: "Could not get upload URL.",
        SubmissionFailure.UPLOAD_TRANSFER_FAILED: "The file could not be transferred to storage.",
    }
    return messages[result.reason]


def _knowledge_table(items: list[KnowledgeItem], replica_id: str) -> Table:
    table = Table(title=f"Knowledge Base ({replica_id})")
    table.add_column("ID", style="dim")
    table.add_column("Title", style="cyan")
    table.add_column("Kind")
    table.add_column("Status")
    table.add_column("Updated", style="dim")

    for item in items:
        updated = item.updated_at.strftime("%Y-%m-%d %H:%M") if item.updated_at else "-"
        table.add_row(
            "…" if item.pending else str(item.id),
            escape(item.display_title),
            item.kind.value,
            status_badge(item.status),
            updated,
        )
    return table


def _tracker_summary(tracker: KnowledgeTracker) -> str:
    counts = tracker.counts()
    return (
        f"[yellow]{counts[StatusOutcome.IN_FLIGHT]} processing[/yellow], "
        f"[green]{counts[StatusOutcome.SUCCESS]} ready[/green], "
        f"[red]{counts[StatusOutcome.FAILURE]} failed[/red]"
    )


async def _watch(tracker: KnowledgeTracker) -> None:
    """Poll until every item is terminal, re-rendering on each refresh."""
    with Live(_knowledge_table(tracker.items, tracker.replica_id), console=console, refresh_per_second=4) as live:
        unsubscribe = tracker.subscribe(
            lambda items: live.update(_knowledge_table(items, tracker.replica_id))
        )
        try:
            tracker.start()
            await tracker.wait_until_settled()
        finally:
            unsubscribe()
            tracker.stop()
    console.print(_tracker_summary(tracker))


@app.command()
def configure(
    secret: str = typer.Argument(..., help="Sensay organization API secret"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Store the organization secret and create a platform user."""
    asyncio.run(_configure_async(secret, config_file))


async def _configure_async(secret: str, config_file: Optional[Path]):
    """Async implementation of configure command."""
    config = _load_config(config_file)
    workspace = await open_workspace(config, RichNotifier())

    try:
        session = await workspace.reconfigure(secret)
        console.print("[green]✓[/green] API secret saved")

        user_id = await workspace.sessions.ensure_user(workspace.gateway)
        if user_id is None:
            console.print("[yellow]User could not be created; run configure again to retry.[/yellow]")
            raise typer.Exit(1)

        console.print(f"  User ID: {user_id}")
        logger.info("session_configured", user_id=user_id, had_user=bool(session.user_id))
    except ConfigurationError as e:
        _configuration_notice(e.message)
        raise typer.Exit(1)
    finally:
        await workspace.close()


@app.command()
def info(
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Show configuration."""
    config = _load_config(config_file)

    table = Table(title="Replica Studio Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Platform URL", config.platform.base_url)
    table.add_row("API Version", config.platform.api_version)
    table.add_row("LLM", f"{config.replica_defaults.llm_provider} / {config.replica_defaults.llm_model}")
    table.add_row("Seed Guide", str(config.replica_defaults.seed_guide_path or "built-in"))
    table.add_row("Poll Interval", f"{config.tracker.poll_interval}s")
    table.add_row("Session Store", config.session_store.store_type.value)
    table.add_row("Data Directory", str(config.data_dir))
    table.add_row("Log Level", config.log_level.value)

    console.print(table)


# ----------------------------------------------------------------------
# replica
# ----------------------------------------------------------------------

replica_app = typer.Typer(help="Manage replicas")
app.add_typer(replica_app, name="replica")


@replica_app.command("list")
def replica_list(
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """List replicas."""
    asyncio.run(_replica_list_async(config_file))


async def _replica_list_async(config_file: Optional[Path]):
    """Async implementation of replica list command."""
    config = _load_config(config_file)
    workspace = await _open_configured(config)

    try:
        replicas = await workspace.replica_manager().list_replicas()
        if not replicas:
            console.print("[yellow]No AI agents found[/yellow]")
            return

        table = Table(title="Your AI Agents")
        table.add_column("Name", style="cyan")
        table.add_column("ID", style="dim")
        table.add_column("Slug", style="green")
        table.add_column("Description")

        for replica in replicas:
            table.add_row(replica.name, replica.id, replica.slug, replica.short_description or "-")

        console.print(table)
    except ConfigurationError as e:
        _configuration_notice(e.message)
        raise typer.Exit(1)
    finally:
        await workspace.close()


@replica_app.command("show")
def replica_show(
    replica_id: str = typer.Argument(..., help="Replica ID"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Show one replica."""
    asyncio.run(_replica_show_async(replica_id, config_file))


async def _replica_show_async(replica_id: str, config_file: Optional[Path]):
    """Async implementation of replica show command."""
    config = _load_config(config_file)
    workspace = await _open_configured(config)

    try:
        replica = await workspace.replica_manager().get_replica(replica_id)
        if replica is None:
            raise typer.Exit(1)

        console.print(f"[bold cyan]{replica.name}[/bold cyan]")
        console.print(f"  ID: {replica.id}")
        console.print(f"  Slug: {replica.slug}")
        console.print(f"  Description: {replica.short_description or '-'}")
        console.print(f"  Greeting: [italic]\"{replica.greeting}\"[/italic]")
        if replica.profile_image:
            console.print(f"  Profile image: {replica.profile_image}")
    except ConfigurationError as e:
        _configuration_notice(e.message)
        raise typer.Exit(1)
    finally:
        await workspace.close()


@replica_app.command("create")
def replica_create(
    name: str = typer.Option(..., "--name", "-n", help="Assistant name"),
    slug: str = typer.Option(..., "--slug", "-s", help="Unique web address (lowercase letters, numbers, hyphens)"),
    description: str = typer.Option(..., "--description", "-d", help="Short description"),
    greeting: str = typer.Option(..., "--greeting", "-g", help="Welcome message"),
    profile_image: Optional[str] = typer.Option(None, "--profile-image", help="Profile image URL"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Create a replica and seed its behavior guide."""
    asyncio.run(_replica_create_async(name, slug, description, greeting, profile_image, config_file))


async def _replica_create_async(
    name: str,
    slug: str,
    description: str,
    greeting: str,
    profile_image: Optional[str],
    config_file: Optional[Path],
):
    """Async implementation of replica create command."""
    try:
        draft = ReplicaDraft(
            name=name,
            short_description=description,
            greeting=greeting,
            slug=slug,
            profile_image=profile_image,
        )
    except ValidationError as e:
        for error in e.errors():
            field = ".".join(str(part) for part in error["loc"])
            console.print(f"[red]{field}:[/red] {error['msg']}")
        raise typer.Exit(1)

    config = _load_config(config_file)
    workspace = await _open_configured(config)

    try:
        result = await workspace.replica_manager().create_replica(draft)
        if not result.created:
            raise typer.Exit(1)

        console.print(f"  ID: {result.replica.id}")
        console.print(f"  Slug: {result.replica.slug}")
        if result.seeded:
            console.print("  [green]✓[/green] Behavior guide added")
        else:
            console.print(f"  [yellow]⚠[/yellow] {result.seed_error}")
    except SlugConflictError as e:
        console.print(f"[red]{e.field}:[/red] {e.field_message}")
        raise typer.Exit(1)
    except ConfigurationError as e:
        _configuration_notice(e.message)
        raise typer.Exit(1)
    finally:
        await workspace.close()


# ----------------------------------------------------------------------
# kb
# ----------------------------------------------------------------------

kb_app = typer.Typer(help="Manage a replica's knowledge base")
app.add_typer(kb_app, name="kb")


@kb_app.command("list")
def kb_list(
    replica_id: str = typer.Argument(..., help="Replica ID"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """List knowledge items and their status."""
    asyncio.run(_kb_list_async(replica_id, config_file))


async def _kb_list_async(replica_id: str, config_file: Optional[Path]):
    """Async implementation of kb list command."""
    config = _load_config(config_file)
    workspace = await _open_configured(config)

    try:
        tracker = workspace.tracker(replica_id)
        items = await tracker.refresh()
        if items is None:
            raise typer.Exit(1)
        if not items:
            console.print("[yellow]No knowledge base items yet.[/yellow]")
            return

        console.print(_knowledge_table(items, replica_id))
        console.print(_tracker_summary(tracker))
    except ConfigurationError as e:
        _configuration_notice(e.message)
        raise typer.Exit(1)
    finally:
        await workspace.close()


@kb_app.command("watch")
def kb_watch(
    replica_id: str = typer.Argument(..., help="Replica ID"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Poll the knowledge base until every item is ready or failed."""
    asyncio.run(_kb_watch_async(replica_id, config_file))


async def _kb_watch_async(replica_id: str, config_file: Optional[Path]):
    """Async implementation of kb watch command."""
    config = _load_config(config_file)
    workspace = await _open_configured(config)

    try:
        await _watch(workspace.tracker(replica_id))
    except ConfigurationError as e:
        _configuration_notice(e.message)
        raise typer.Exit(1)
    finally:
        await workspace.close()


async def _finish_submission(workspace: Workspace, replica_id: str, result: SubmissionResult, watch: bool):
    if not result.accepted:
        console.print(f"[red]✗[/red] {_submission_message(result)}")
        raise typer.Exit(1)

    console.print(f"[green]✓[/green] {_submission_message(result)}")
    if watch:
        await _watch(workspace.tracker(replica_id))


@kb_app.command("add-text")
def kb_add_text(
    replica_id: str = typer.Argument(..., help="Replica ID"),
    text: str = typer.Argument(..., help="Text content"),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="Item title"),
    watch: bool = typer.Option(False, "--watch", "-w", help="Poll until processing finishes"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Add free text (FAQs, market updates)."""
    asyncio.run(_kb_add_text_async(replica_id, text, title, watch, config_file))


async def _kb_add_text_async(
    replica_id: str, text: str, title: Optional[str], watch: bool, config_file: Optional[Path]
):
    """Async implementation of kb add-text command."""
    config = _load_config(config_file)
    workspace = await _open_configured(config)

    try:
        result = await workspace.ingestion(replica_id).submit_text(replica_id, text, title)
        await _finish_submission(workspace, replica_id, result, watch)
    except ConfigurationError as e:
        _configuration_notice(e.message)
        raise typer.Exit(1)
    finally:
        await workspace.close()


@kb_app.command("add-listing")
def kb_add_listing(
    replica_id: str = typer.Argument(..., help="Replica ID"),
    address: str = typer.Option(..., "--address", help="Street address"),
    price: str = typer.Option(..., "--price", help="Asking price"),
    bedrooms: str = typer.Option(..., "--bedrooms", help="Bedroom count"),
    bathrooms: str = typer.Option(..., "--bathrooms", help="Bathroom count"),
    square_feet: str = typer.Option(..., "--square-feet", help="Interior square footage"),
    description: str = typer.Option("", "--description", "-d", help="Listing description"),
    virtual_tour_url: Optional[str] = typer.Option(None, "--virtual-tour-url", help="Virtual tour link"),
    photo_urls: Optional[str] = typer.Option(None, "--photo-urls", help="Comma-separated photo links"),
    watch: bool = typer.Option(False, "--watch", "-w", help="Poll until processing finishes"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Add a structured property listing."""
    form = {
        "address": address,
        "price": price,
        "bedrooms": bedrooms,
        "bathrooms": bathrooms,
        "square_feet": square_feet,
        "description": description,
        "virtual_tour_url": virtual_tour_url,
        "photo_urls": photo_urls,
    }
    asyncio.run(_kb_add_listing_async(replica_id, form, watch, config_file))


async def _kb_add_listing_async(replica_id: str, form: dict, watch: bool, config_file: Optional[Path]):
    """Async implementation of kb add-listing command."""
    config = _load_config(config_file)
    workspace = await _open_configured(config)

    try:
        result = await workspace.ingestion(replica_id).submit_listing(replica_id, form)
        await _finish_submission(workspace, replica_id, result, watch)
    except ConfigurationError as e:
        _configuration_notice(e.message)
        raise typer.Exit(1)
    finally:
        await workspace.close()


@kb_app.command("upload")
def kb_upload(
    replica_id: str = typer.Argument(..., help="Replica ID"),
    path: Path = typer.Argument(..., help="File to upload (PDF, DOCX, TXT, ...)"),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="Item title"),
    watch: bool = typer.Option(False, "--watch", "-w", help="Poll until processing finishes"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Upload a file through a signed URL."""
    asyncio.run(_kb_upload_async(replica_id, path, title, watch, config_file))


async def _kb_upload_async(
    replica_id: str, path: Path, title: Optional[str], watch: bool, config_file: Optional[Path]
):
    """Async implementation of kb upload command."""
    if not path.is_file():
        console.print(f"[red]File not found: {path}[/red]")
        raise typer.Exit(1)

    config = _load_config(config_file)
    workspace = await _open_configured(config)

    try:
        upload = FileUpload.from_path(path)
        console.print(f"  Uploading {upload.filename} ({upload.size} bytes, {upload.content_type})")
        result = await workspace.ingestion(replica_id).submit_file(replica_id, upload, title)
        await _finish_submission(workspace, replica_id, result, watch)
    except ConfigurationError as e:
        _configuration_notice(e.message)
        raise typer.Exit(1)
    finally:
        await workspace.close()


@kb_app.command("add-url")
def kb_add_url(
    replica_id: str = typer.Argument(..., help="Replica ID"),
    url: str = typer.Argument(..., help="Web page or YouTube URL"),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="Item title"),
    watch: bool = typer.Option(False, "--watch", "-w", help="Poll until processing finishes"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Add a web page or video by URL."""
    asyncio.run(_kb_add_url_async(replica_id, url, title, watch, config_file))


async def _kb_add_url_async(
    replica_id: str, url: str, title: Optional[str], watch: bool, config_file: Optional[Path]
):
    """Async implementation of kb add-url command."""
    config = _load_config(config_file)
    workspace = await _open_configured(config)

    try:
        result = await workspace.ingestion(replica_id).submit_url(replica_id, url, title)
        await _finish_submission(workspace, replica_id, result, watch)
    except ConfigurationError as e:
        _configuration_notice(e.message)
        raise typer.Exit(1)
    finally:
        await workspace.close()


@kb_app.command("delete")
def kb_delete(
    replica_id: str = typer.Argument(..., help="Replica ID"),
    item_id: int = typer.Argument(..., help="Knowledge item ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Delete a knowledge item."""
    asyncio.run(_kb_delete_async(replica_id, item_id, yes, config_file))


async def _kb_delete_async(replica_id: str, item_id: int, yes: bool, config_file: Optional[Path]):
    """Async implementation of kb delete command."""
    config = _load_config(config_file)
    workspace = await _open_configured(config)

    def confirm(target_id: int) -> bool:
        return yes or typer.confirm(f"Delete knowledge item {target_id}? This cannot be undone.")

    try:
        tracker = workspace.tracker(replica_id)
        deleted = await tracker.delete(item_id, confirm)
        if not deleted:
            raise typer.Exit(1)
    except ConfigurationError as e:
        _configuration_notice(e.message)
        raise typer.Exit(1)
    finally:
        await workspace.close()


# ----------------------------------------------------------------------
# chat
# ----------------------------------------------------------------------

@app.command()
def chat(
    replica_id: str = typer.Argument(..., help="Replica ID"),
    message: Optional[str] = typer.Option(None, "--message", "-m", help="Send one message and exit"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Chat with a replica."""
    asyncio.run(_chat_async(replica_id, message, config_file))


async def _chat_async(replica_id: str, message: Optional[str], config_file: Optional[Path]):
    """Async implementation of chat command."""
    config = _load_config(config_file)
    workspace = await _open_configured(config)
    transcript: list[tuple[str, str]] = []

    async def exchange(content: str) -> bool:
        transcript.append(("you", content))
        reply = await workspace.gateway.send_chat_message(replica_id, content)
        if reply is None:
            return False
        transcript.append(("agent", reply))
        console.print(f"[bold green]agent:[/bold green] {reply}")
        return True

    try:
        if message is not None:
            if not await exchange(message):
                raise typer.Exit(1)
            return

        console.print("[dim]Type 'exit' to leave.[/dim]")
        while True:
            try:
                content = typer.prompt("you").strip()
            except typer.Abort:
                break
            if content.lower() in CHAT_EXIT_WORDS:
                break
            if content:
                await exchange(content)

        logger.info("chat_ended", replica_id=replica_id, messages=len(transcript))
    except ConfigurationError as e:
        _configuration_notice(e.message)
        raise typer.Exit(1)
    finally:
        await workspace.close()


def _load_config(config_file: Optional[Path]) -> AppConfig:
    """Load configuration and setup logging."""
    if config_file is None:
        config_file = get_default_config_path()

    config = load_config(config_file)
    configure_from_config(config)

    return config


def main() -> None:
    app()


if __name__ == "__main__":
    main()
