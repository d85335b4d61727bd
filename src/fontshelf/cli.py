"""CLI entry point for fontshelf - validate, inspect and serve uploaded fonts."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

import click

from fontshelf import __version__

# -- CLI group --------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="fontshelf")
@click.option("-v", "--verbose", is_flag=True, help="Verbose output")
@click.pass_context
def cli(ctx: click.Context, verbose: bool):
    """Manage an uploaded font library and its font groups."""
    if verbose:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")


# -- validate --------------------------------------------------------------------------


@cli.command()
@click.argument("font_path", type=click.Path())
def validate(font_path):
    """Check that a file is an acceptable TrueType/OpenType binary."""
    from fontshelf.validator import container_kind, validate_file

    issues = validate_file(font_path)
    if issues:
        click.secho(f"INVALID: {font_path}", fg="red")
        for issue in issues:
            click.echo(f"  - {issue}")
        sys.exit(1)

    kind = container_kind(Path(font_path).read_bytes())
    click.secho(f"VALID: {font_path} ({kind})", fg="green")


# -- inspect ---------------------------------------------------------------------------


@cli.command()
@click.argument("font_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--name", default=None, help="Display name (defaults to the file stem)")
def inspect(font_path, name):
    """Resolve the characteristics and FaceKey of a font file."""
    from fontshelf.resolver import resolve_characteristics
    from fontshelf.schema import FontRecord
    from fontshelf.utils import file_stem

    path = Path(font_path)
    record = FontRecord(
        id=file_stem(path.name),
        filename=path.name,
        display_name=name or file_stem(path.name),
        storage_path=str(path),
    )

    try:
        data = path.read_bytes()
    except OSError as e:
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(1)

    ch = resolve_characteristics(record, data)
    click.echo(f"Inspecting: {font_path}\n")
    click.echo(f"  Family:    {ch.family_name}")
    click.echo(f"  Weight:    {ch.weight}")
    click.echo(f"  Style:     {ch.style.value}")
    click.echo(f"  Serif:     {'yes' if ch.is_serif else 'no'}")
    click.echo(f"  Monospace: {'yes' if ch.is_monospace else 'no'}")
    if ch.metrics is not None:
        m = ch.metrics
        click.echo(
            f"  Metrics:   ascender={m.ascender} descender={m.descender} "
            f"lineGap={m.line_gap} unitsPerEm={m.units_per_em}"
        )
    click.echo(f"  Source:    {ch.source}")
    click.echo(f"\n  FaceKey:   {ch.face_key}")
    if ch.source == "heuristic":
        click.secho("  Binary parse failed; values guessed from the name.", fg="yellow")


# -- sanitize --------------------------------------------------------------------------


@cli.command()
@click.argument("name")
def sanitize(name):
    """Print the stored filename an upload named NAME would get."""
    from fontshelf.utils import sanitize_filename

    click.echo(sanitize_filename(name))


# -- fonts / groups --------------------------------------------------------------------


@cli.command()
@click.option(
    "--data-dir", type=click.Path(file_okay=False), default=".", help="Data directory"
)
def fonts(data_dir):
    """List stored fonts with their resolved family, weight and style."""
    from fontshelf.library import FontLibrary

    library = FontLibrary.open(data_dir)
    entries = asyncio.run(library.list_fonts())
    if not entries:
        click.secho(f"No fonts stored in {library.store.fonts_dir}", fg="yellow")
        return

    for entry in entries:
        ch = entry["characteristics"]
        flags = [flag for flag, on in (("serif", ch["isSerif"]), ("mono", ch["isMonospace"])) if on]
        suffix = f" [{', '.join(flags)}]" if flags else ""
        click.echo(
            f"{entry['filename']:<40} {ch['familyName']} {ch['weight']} {ch['style']}{suffix}"
        )
    click.echo(f"\n{len(entries)} font(s)")


@cli.command()
@click.option(
    "--data-dir", type=click.Path(file_okay=False), default=".", help="Data directory"
)
def groups(data_dir):
    """List font groups and the fonts selected in each."""
    from fontshelf.store import GroupStore

    store = GroupStore.in_data_dir(data_dir)
    items = store.list_groups()
    if not items:
        click.secho("No groups yet", fg="yellow")
        return

    for group in items:
        click.echo(f"{group.id}  {group.title} ({len(group.fonts)} fonts)")
        for row in group.fonts:
            click.echo(f"    {row.display_name} -> {row.selected_font_id}")


# -- serve -----------------------------------------------------------------------------


@cli.command()
@click.option("--host", default=None, help="Bind address (default: FONTSHELF_HOST or 127.0.0.1)")
@click.option("--port", type=int, default=None, help="Port (default: FONTSHELF_PORT or 5000)")
@click.option("--data-dir", type=click.Path(file_okay=False), default=None, help="Data directory")
def serve(host, port, data_dir):
    """Run the HTTP API for uploads, activation, previews and groups."""
    from serve import run
    from fontshelf.config import ServerSettings

    try:
        settings = ServerSettings.from_env()
    except ValueError as e:
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(1)

    if host is not None:
        settings.host = host
    if port is not None:
        settings.port = port
    if data_dir is not None:
        settings.data_dir = data_dir
    run(settings)


if __name__ == "__main__":
    cli()
