"""
Font Cache CLI
==============

Command line interface for caching catalog and local fonts.
"""

import logging
import sys
from pathlib import Path

import click
from tqdm import tqdm

from fontcache.cache.manager import CacheManager
from fontcache.cache.results import ProgressCallback, WorkflowOutcome
from fontcache.core.config import FontCacheConfig
from fontcache.core.exceptions import FontCacheError
from fontcache.core.models import FontStyle, VariantDescriptor

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class TqdmProgressCallback(ProgressCallback):
    """Progress bar over the variants of one workflow."""

    def __init__(self):
        self.pbar: tqdm | None = None

    def on_start(self, family: str, total_variants: int) -> None:
        self.pbar = tqdm(total=total_variants, unit="file", desc=f"Caching {family}")

    def on_variant_complete(self, descriptor: VariantDescriptor, success: bool) -> None:
        if self.pbar is not None:
            self.pbar.set_postfix_str(f"{descriptor.weight} {descriptor.style.value}")
            self.pbar.update(1)

    def on_complete(self, outcome: WorkflowOutcome) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None


def _report(outcome: WorkflowOutcome) -> None:
    """Print an outcome; exit with status 1 unless it committed."""
    if outcome.ok:
        click.echo(outcome.message)
        for failure in outcome.failed:
            click.echo(f"  failed: {failure}", err=True)
        return
    click.echo(f"Error: {outcome.message}", err=True)
    sys.exit(1)


def _manager(ctx: click.Context) -> CacheManager:
    return ctx.obj["manager"]


@click.group()
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to configuration YAML file",
)
@click.option(
    "--cache-root",
    type=click.Path(file_okay=False, path_type=Path),
    help="Cache folder (overrides configuration)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx, config_path, cache_root, verbose):
    """Font asset cache CLI."""
    if ctx.obj and "manager" in ctx.obj:
        # Pre-built manager (embedding applications and tests)
        return

    try:
        config = FontCacheConfig.load(yaml_path=config_path, cache_root=cache_root)
    except (FontCacheError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    level = logging.DEBUG if verbose else config.log_level
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger().setLevel(level)

    manager = CacheManager(config)
    ctx.obj = {"config": config, "manager": manager}
    ctx.call_on_close(manager.close)


@cli.command(name="add")
@click.argument("reference")
@click.option("--weight", "-w", "weights", type=int, multiple=True, help="Weight to cache")
@click.option(
    "--style",
    "-s",
    "styles",
    type=click.Choice(["normal", "italic"], case_sensitive=False),
    multiple=True,
    help="Style to cache",
)
@click.option("--name", "display_name", help="Display name")
@click.option("--all-variants", is_flag=True, help="Cache every weight and style offered")
@click.pass_context
def add(ctx, reference, weights, styles, display_name, all_variants):
    """Cache a font from the catalog (family name or URL)."""
    manager = _manager(ctx)
    if all_variants:
        try:
            discovered = manager.discover(reference)
        except FontCacheError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
        weights = discovered.weights
        styles = [style.value for style in discovered.styles]

    outcome = manager.cache_from_catalog(
        reference,
        weights=list(weights) or None,
        styles=list(styles) or None,
        display_name=display_name,
        progress=TqdmProgressCallback(),
    )
    _report(outcome)


@cli.command(name="add-local")
@click.argument("folder", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--family", help="Family name (inferred from file names by default)")
@click.option("--name", "display_name", help="Display name")
@click.pass_context
def add_local(ctx, folder, family, display_name):
    """Cache the font files of a local folder."""
    outcome = _manager(ctx).cache_from_local_folder(
        folder, family=family, display_name=display_name, progress=TqdmProgressCallback()
    )
    _report(outcome)


@cli.command(name="discover")
@click.argument("reference")
@click.pass_context
def discover(ctx, reference):
    """Show the weights and styles the catalog offers."""
    try:
        result = _manager(ctx).discover(reference)
    except FontCacheError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"Family:  {result.family}")
    click.echo(f"Weights: {', '.join(str(w) for w in result.weights)}")
    click.echo(f"Styles:  {', '.join(s.value for s in result.styles)}")


@cli.command(name="list")
@click.pass_context
def list_fonts(ctx):
    """List cached fonts."""
    fonts = _manager(ctx).list_fonts()
    if not fonts:
        click.echo("No fonts cached")
        return

    for record in fonts:
        origin = "local" if record.is_local else "catalog"
        weights = ",".join(str(w) for w in record.weights)
        click.echo(
            f"{record.name:<30} {record.display_name:<30} {origin:<8} "
            f"weights={weights} styles={','.join(record.styles)}"
        )


@cli.command(name="info")
@click.argument("family")
@click.pass_context
def info(ctx, family):
    """Show details of a cached font."""
    manager = _manager(ctx)
    record = manager.get_font(family)
    if record is None:
        click.echo(f"Error: {family} is not cached", err=True)
        sys.exit(1)

    click.echo(f"Name:         {record.name}")
    click.echo(f"Display name: {record.display_name}")
    click.echo(f"Source:       {record.source_url or 'local folder'}")
    click.echo(f"Cached at:    {record.cached_at.isoformat()}")
    click.echo("Files:")
    for entry in record.files:
        path = manager.lookup(record.name, entry.weight, entry.style)
        status = "" if path is not None else "  (missing)"
        click.echo(
            f"  {entry.weight} {entry.style.value:<7} {entry.format.value:<6} "
            f"{entry.local_path}{status}"
        )


@cli.command(name="remove")
@click.argument("family")
@click.pass_context
def remove(ctx, family):
    """Remove a cached font and its files."""
    _report(_manager(ctx).delete(family))


@cli.command(name="rename")
@click.argument("family")
@click.argument("display_name")
@click.pass_context
def rename(ctx, family, display_name):
    """Change the display name of a cached font."""
    try:
        record = _manager(ctx).update_display_name(family, display_name)
    except FontCacheError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"{record.name} is now displayed as {record.display_name!r}")


@cli.command(name="clear")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def clear(ctx, yes):
    """Remove every cached font."""
    if not yes:
        click.confirm("Remove all cached fonts?", abort=True)
    removed = _manager(ctx).clear_cache()
    click.echo(f"Removed {len(removed)} fonts")


@cli.command(name="lookup")
@click.argument("family")
@click.argument("weight", type=int)
@click.option(
    "--style",
    "-s",
    type=click.Choice(["normal", "italic"], case_sensitive=False),
    default="normal",
    help="Font style",
)
@click.pass_context
def lookup(ctx, family, weight, style):
    """Print the path of a cached variant file."""
    path = _manager(ctx).lookup(family, weight, FontStyle.parse(style))
    if path is None:
        click.echo(f"Error: no cached file for {family} {weight} {style}", err=True)
        sys.exit(1)
    click.echo(str(path))


@cli.command(name="css")
@click.argument("family")
@click.option("--weight", "-w", "weights", type=int, multiple=True, help="Weight to include")
@click.pass_context
def css(ctx, family, weights):
    """Print self-contained @font-face CSS for a cached font."""
    try:
        click.echo(_manager(ctx).font_face_css(family, list(weights) or None))
    except FontCacheError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    cli()
