"""
Command-line interface for the Draft Publisher.

Uses Typer to provide commands for publishing drafts and inspecting the
media library and metadata registry. Supports loading .env files for API
keys and Cloudflare credentials.
"""

from __future__ import annotations

from pathlib import Path
import logging

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import AppConfig, load_config
from .core.components import build_snippet
from .core.draft import Draft, list_drafts, load_draft
from .core.scanner import classify_url
from .core.types import DraftKind, MediaItem, MediaType, params_from_dict
from .errors import EnumFieldError, PublishError, SchemaValidationError
from .llm.validation import validate_media_params
from .media.library import MediaLibrary
from .registry.store import MetadataRegistry, rebuild_registry
from .runner import build_pipeline, build_uploader
from .utils.logging import setup_llm_logger, setup_logging
from .utils.tracing import flush, setup_langfuse

try:
    from dotenv import load_dotenv
except Exception:  # noqa: BLE001
    load_dotenv = None

app = typer.Typer(add_completion=False)
media_app = typer.Typer(add_completion=False, help="Inspect the media library.")
registry_app = typer.Typer(add_completion=False, help="Inspect the metadata registry.")
app.add_typer(media_app, name="media")
app.add_typer(registry_app, name="registry")
console = Console()

DEFAULT_CONFIG = Path("config.yaml")


def _load(config: Path | None, log_level: str | None = None) -> tuple[AppConfig, logging.Logger]:
    if load_dotenv is not None:
        load_dotenv()
    if config is None and DEFAULT_CONFIG.exists():
        config = DEFAULT_CONFIG
    cfg = load_config(str(config) if config else None)
    if log_level:
        cfg.logging.level = log_level
    logger = setup_logging(cfg.logging, Path(cfg.paths.log_dir))
    return cfg, logger


def _choose_draft(cfg: AppConfig, kind: DraftKind | None) -> Draft | None:
    drafts = list_drafts(Path(cfg.paths.drafts_dir), kind)
    if not drafts:
        return None
    table = Table(title="Pending drafts")
    table.add_column("#", justify="right")
    table.add_column("Kind")
    table.add_column("File")
    for idx, draft in enumerate(drafts, start=1):
        table.add_row(str(idx), draft.kind.value, draft.name)
    console.print(table)
    choice = typer.prompt("Select a draft", type=int)
    if not 1 <= choice <= len(drafts):
        raise typer.BadParameter(f"choose a number between 1 and {len(drafts)}")
    return drafts[choice - 1]


def _show_exchange(purpose: str, prompt: str, response: str) -> None:
    console.print(Panel(prompt, title=f"{purpose} prompt", expand=False))
    console.print(Panel(response, title=f"{purpose} response", expand=False))
    if not typer.confirm("Continue?", default=True):
        raise typer.Abort()


@app.command()
def publish(
    draft: Path | None = typer.Argument(None, exists=True, dir_okay=False, readable=True),
    kind: DraftKind | None = typer.Option(None, "--kind", "-k", help="case or post; inferred from the folder otherwise."),
    config: Path | None = typer.Option(None, "--config", "-c", exists=True),
    force: bool = typer.Option(False, "--force", help="Overwrite existing content without asking."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Stop before writing the content file."),
    debug: bool = typer.Option(False, "--debug", help="Show prompts and responses, confirming each call."),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level."),
    api_key: str | None = typer.Option(None, "--api-key", help="Override provider API key (or set it in .env)."),
):
    """Publish a draft.

    Scans the draft for media, uploads new assets, extracts metadata, generates
    the article and writes it to the content directory. Without DRAFT, choose
    from the pending drafts interactively.

    Args:
        draft: Path to the draft file
        kind: Override the draft kind
        config: Optional path to YAML config file
        force: Overwrite an existing content file
        dry_run: Skip writing and renaming
        debug: Inspect every model exchange
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        api_key: Override LLM provider API key
    """
    cfg, logger = _load(config, log_level)
    if api_key:
        cfg.provider.api_key = api_key
    setup_langfuse(cfg.langfuse)

    try:
        if draft is None:
            selected = _choose_draft(cfg, kind)
            if selected is None:
                console.print("No pending drafts.")
                return
        else:
            selected = load_draft(draft, kind)
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)

    def confirm_overwrite(path: Path) -> bool:
        return force or typer.confirm(f"{path} exists. Overwrite?", default=False)

    try:
        pipeline = build_pipeline(
            cfg,
            logger=logger,
            llm_logger=setup_llm_logger(cfg.logging, Path(cfg.paths.log_dir)),
            confirm_overwrite=confirm_overwrite,
            on_exchange=_show_exchange if debug else None,
        )
        result = pipeline.run(selected, dry_run=dry_run)
    except PublishError as exc:
        console.print(f"[red]{type(exc).__name__}:[/red] {exc}")
        flush()
        raise typer.Exit(exc.exit_code)

    if dry_run and result.article is not None:
        console.rule(f"{result.article.slug} (dry run)")
        console.print(pipeline.writer.render(result.article), markup=False, highlight=False)
    else:
        console.print(f"Published: {result.output_path}")
        console.print(f"Draft renamed: {result.published_draft_path}")
    console.print(f"New uploads: {result.new_uploads}, reused assets: {result.reused_assets}")

    flush()


@app.command()
def drafts(
    kind: DraftKind | None = typer.Option(None, "--kind", "-k"),
    config: Path | None = typer.Option(None, "--config", "-c", exists=True),
):
    """List drafts waiting to be published."""
    cfg, _ = _load(config)
    pending = list_drafts(Path(cfg.paths.drafts_dir), kind)
    if not pending:
        console.print("No pending drafts.")
        return
    table = Table(title=f"Pending drafts ({cfg.paths.drafts_dir})")
    table.add_column("Kind")
    table.add_column("File")
    for item in pending:
        table.add_row(item.kind.value, item.name)
    console.print(table)


@app.command("rebuild-registry")
def rebuild_registry_command(
    config: Path | None = typer.Option(None, "--config", "-c", exists=True),
):
    """Rebuild the metadata registry from published content frontmatter."""
    cfg, logger = _load(config)
    registry = rebuild_registry(Path(cfg.paths.content_dir), Path(cfg.paths.registry_path), logger=logger)
    _print_counts(registry)


@media_app.command("list")
def media_list(
    media_type: str | None = typer.Option(None, "--type", "-t", help="video, image or document."),
    config: Path | None = typer.Option(None, "--config", "-c", exists=True),
):
    """List library assets, newest first."""
    cfg, logger = _load(config)
    parsed = None
    if media_type:
        parsed = MediaType.parse(media_type)
        if parsed is None or parsed.bucket is None:
            raise typer.BadParameter("type must be video, image or document")
    library = MediaLibrary(Path(cfg.paths.library_path), logger=logger)
    _print_assets(library.list_assets(parsed))


@media_app.command("search")
def media_search(
    query: str = typer.Argument(...),
    config: Path | None = typer.Option(None, "--config", "-c", exists=True),
):
    """Search library assets by id, URL, file name or description."""
    cfg, logger = _load(config)
    library = MediaLibrary(Path(cfg.paths.library_path), logger=logger)
    _print_assets(library.search(query))


@media_app.command("upload")
def media_upload(
    url: str = typer.Argument(..., help="Source URL of the file."),
    media_type: str | None = typer.Option(
        None, "--type", "-t", help="video, image or document; inferred from the URL otherwise."
    ),
    alt: str | None = typer.Option(None, "--alt", help="Image alt text (required for images)."),
    caption: str | None = typer.Option(None, "--caption"),
    title: str | None = typer.Option(None, "--title", help="Document title (required for documents)."),
    description: str | None = typer.Option(None, "--description", help="Document description."),
    config: Path | None = typer.Option(None, "--config", "-c", exists=True),
):
    """Upload one file into the media library outside a publish run.

    Prints the library record and the component snippet to paste into a draft
    or article. A URL already in the library is reported, not uploaded again.
    """
    cfg, logger = _load(config)
    parsed = MediaType.parse(media_type) if media_type else classify_url(url)
    if parsed is None or parsed.bucket is None:
        raise typer.BadParameter("type must be video, image or document")

    raw = {"alt": alt, "caption": caption, "title": title, "description": description}
    raw = {key: value for key, value in raw.items() if value is not None}
    violations = validate_media_params(parsed, raw, source_url=url)
    if violations:
        for violation in violations:
            console.print(str(violation), markup=False)
        raise typer.Exit(SchemaValidationError.exit_code)

    item = MediaItem(source_url=url, type=parsed, params=params_from_dict(parsed, raw))
    uploader = build_uploader(cfg, MediaLibrary(Path(cfg.paths.library_path), logger=logger), logger=logger)
    try:
        asset, created = uploader.upload_and_register(item)
    except PublishError as exc:
        console.print(f"[red]{type(exc).__name__}:[/red] {exc}")
        raise typer.Exit(exc.exit_code)
    finally:
        uploader.cleanup_temp_dir()

    console.print(f"{'Uploaded' if created else 'Already in library'}: {asset.id} ({asset.provider_id})")
    console.print(build_snippet(item, asset), markup=False, highlight=False)


@registry_app.command("add")
def registry_add(
    field: str = typer.Argument(..., help="Extendable list, e.g. agencies or post_tags."),
    value: str = typer.Argument(...),
    config: Path | None = typer.Option(None, "--config", "-c", exists=True),
):
    """Add a canonical value to an extendable registry list."""
    cfg, logger = _load(config)
    registry = MetadataRegistry(Path(cfg.paths.registry_path), logger=logger)
    try:
        added = registry.add(field, value)
    except EnumFieldError:
        raise typer.BadParameter(f"not an extendable registry list: {field}") from None
    if added:
        console.print(f"Added to {field}: {value.strip()}", markup=False)
    else:
        console.print(f"{field} already has {registry.match(field, value) or value!r}", markup=False)


@registry_app.command("prompt")
def registry_prompt(
    kind: DraftKind = typer.Option(DraftKind.CASE, "--kind", "-k"),
    config: Path | None = typer.Option(None, "--config", "-c", exists=True),
):
    """Print the registry section exactly as the metadata prompt shows it."""
    cfg, logger = _load(config)
    registry = MetadataRegistry(Path(cfg.paths.registry_path), logger=logger)
    console.print(registry.format_for_prompt(kind), markup=False, highlight=False)


@registry_app.command("show")
def registry_show(
    field: str | None = typer.Option(None, "--field", "-f", help="Print the values of one list."),
    config: Path | None = typer.Option(None, "--config", "-c", exists=True),
):
    """Print registry list sizes, or the values of one list."""
    cfg, logger = _load(config)
    registry = MetadataRegistry(Path(cfg.paths.registry_path), logger=logger)
    if field is None:
        _print_counts(registry)
        return
    try:
        values = registry.values(field)
    except EnumFieldError:
        raise typer.BadParameter(f"not an extendable registry list: {field}") from None
    for value in values:
        console.print(value, markup=False)


def _print_assets(assets) -> None:
    if not assets:
        console.print("No assets.")
        return
    table = Table()
    table.add_column("Id")
    table.add_column("Type")
    table.add_column("File")
    table.add_column("Source URL", overflow="fold")
    table.add_column("Added")
    for asset in assets:
        table.add_row(asset.id, asset.type.value, asset.file_name, asset.source_url, asset.added_at)
    console.print(table)


def _print_counts(registry: MetadataRegistry) -> None:
    table = Table(title=f"Metadata registry ({registry.path})")
    table.add_column("List")
    table.add_column("Values", justify="right")
    for name, count in registry.counts().items():
        table.add_row(name, str(count))
    console.print(table)


if __name__ == "__main__":
    app()
