"""
Command-line interface for bird-atlas.

Commands:
    scan: Scan photo folders and print the species tree
    match: Explain how a file name would be matched
    reveal: Show a photo in the file manager
    open: Open a photo with the default application

Example:
    $ bird-atlas scan ~/Pictures/Birds --taxonomy master_ioc_list.xlsx
    $ bird-atlas scan ~/Pictures/Birds --format json --output atlas.json
    $ bird-atlas match "2024/Turdus merula/IMG_0042.jpg" --taxonomy master_ioc_list.xlsx
"""

import json
import sys
from pathlib import Path
from typing import Iterable, List, Tuple

import click
from tqdm import tqdm

from bird_atlas.config import Config, load_config
from bird_atlas.exceptions import BirdAtlasError
from bird_atlas.locator import open_file, reveal_in_file_manager
from bird_atlas.models.enums import MatchRule
from bird_atlas.models.scan import ScanRequest, ScanResponse
from bird_atlas.orchestrator import ScanOrchestrator
from bird_atlas.scanner.matcher import SpeciesMatcher
from bird_atlas.taxonomy.loader import load_taxonomy
from bird_atlas.tree import tree_to_dataframe
from bird_atlas.utils import format_duration, setup_logging


@click.group()
@click.option('--config', '-c', type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help='Configuration file path')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--quiet', '-q', is_flag=True, help='Suppress non-essential output')
@click.pass_context
def main(ctx, config, verbose, quiet):
    """bird-atlas - Index bird photos by species.

    Walks photo folders, infers each photo's species from its file and
    folder names using a taxonomy list, and arranges the photos into an
    Order / Family / Genus / Species tree.

    Examples:
        bird-atlas scan ~/Pictures/Birds --taxonomy master_ioc_list.xlsx
        bird-atlas match blackbird_garden.jpg --taxonomy birds.csv
    """
    ctx.ensure_object(dict)

    try:
        config_obj = load_config(config)
    except BirdAtlasError as e:
        raise click.ClickException(str(e)) from e

    if quiet:
        log_level = 'WARNING'
    elif verbose:
        log_level = 'DEBUG'
    else:
        log_level = config_obj.logging.level

    # Logs go to stderr so JSON on stdout stays parseable
    setup_logging(log_level, config_obj.logging.file, stream=sys.stderr)

    ctx.obj['config'] = config_obj
    ctx.obj['quiet'] = quiet


@main.command()
@click.argument('roots', nargs=-1, type=click.Path(file_okay=False, path_type=Path))
@click.option('--taxonomy', '-t', type=click.Path(path_type=Path),
              help='Taxonomy workbook or CSV (defaults to taxonomy.path in config)')
@click.option('--cache', type=click.Path(dir_okay=False, path_type=Path),
              help='Match cache file (defaults to cache.path in config)')
@click.option('--workers', '-w', type=click.IntRange(min=1), help='Number of match workers')
@click.option('--format', 'output_format', type=click.Choice(['text', 'json']), default='text',
              help='Output format')
@click.option('--output', '-o', type=click.Path(dir_okay=False, path_type=Path),
              help='Write the report to a file instead of stdout')
@click.option('--csv', 'csv_path', type=click.Path(dir_okay=False, path_type=Path),
              help='Also write one row per matched photo to a CSV file')
@click.option('--show-unmatched', is_flag=True, help='List photos no species was found for')
@click.option('--progress/--no-progress', default=True, help='Show progress bar')
@click.pass_context
def scan(ctx, roots, taxonomy, cache, workers, output_format, output, csv_path,
         show_unmatched, progress):
    """Scan photo folders and build the species tree.

    ROOTS: One or more directories to scan

    Examples:
        bird-atlas scan ~/Pictures/Birds --taxonomy master_ioc_list.xlsx
        bird-atlas scan /photos/2023 /photos/2024 --workers 8 --no-progress
        bird-atlas scan ~/Pictures/Birds --format json --output atlas.json
    """
    config: Config = ctx.obj['config']

    if not roots:
        raise click.UsageError('At least one ROOT directory is required')

    taxonomy = taxonomy or config.taxonomy.path
    if not taxonomy:
        raise click.UsageError('No taxonomy given: pass --taxonomy or set taxonomy.path in config')

    if workers:
        config.scanning.max_workers = workers

    request = ScanRequest(
        roots=[root.expanduser() for root in roots],
        taxonomy_path=Path(taxonomy).expanduser(),
        cache_path=Path(cache or config.cache.path).expanduser(),
    )

    show_progress = progress and not ctx.obj.get('quiet')
    with tqdm(desc='Scanning', unit='files', disable=not show_progress, file=sys.stderr) as bar:
        def on_progress(processed):
            bar.update(processed - bar.n)

        try:
            response = ScanOrchestrator(request, config, progress_callback=on_progress).run()
        except BirdAtlasError as e:
            raise click.ClickException(str(e)) from e

    if output_format == 'json':
        report = json.dumps(response.to_dict(), indent=2, ensure_ascii=False)
    else:
        report = render_report(response, show_unmatched=show_unmatched)

    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(report + '\n', encoding='utf-8')
        click.echo(f"Report saved to: {output}", err=True)
    else:
        click.echo(report)

    if csv_path:
        csv_path.parent.mkdir(parents=True, exist_ok=True)
        tree_to_dataframe(response.tree).to_csv(csv_path, index=False, encoding='utf-8')
        click.echo(f"Photo table saved to: {csv_path}", err=True)


@main.command()
@click.argument('name')
@click.option('--taxonomy', '-t', type=click.Path(path_type=Path),
              help='Taxonomy workbook or CSV (defaults to taxonomy.path in config)')
@click.pass_context
def match(ctx, name, taxonomy):
    """Explain how a file name would be matched.

    NAME: A file name, or a relative path whose folders should be considered

    Examples:
        bird-atlas match IMG_Turdus_merula_001.jpg -t birds.csv
        bird-atlas match "Thrushes/blackbird_garden.jpg" -t birds.csv
    """
    config: Config = ctx.obj['config']

    taxonomy = taxonomy or config.taxonomy.path
    if not taxonomy:
        raise click.UsageError('No taxonomy given: pass --taxonomy or set taxonomy.path in config')

    try:
        table = load_taxonomy(Path(taxonomy).expanduser(), config.taxonomy)
    except BirdAtlasError as e:
        raise click.ClickException(str(e)) from e

    matcher = SpeciesMatcher(
        table,
        noise_tokens=config.matching.noise_tokens,
        min_keyword_length=config.matching.min_keyword_length,
    )
    file_name, ancestors = split_name(name)
    decision = matcher.explain_name(file_name, ancestors)

    click.echo(f"Name:       {name}")
    click.echo(f"Rule:       {decision.rule.label}")
    if decision.component is not None:
        click.echo(f"Component:  {decision.component}")

    if decision.result.is_matched:
        entry = table.get(decision.result.latin_name)
        click.echo(f"Species:    {entry.latin_name} ({entry.common_name or 'no common name'})")
        click.echo(f"Lineage:    {entry.order} / {entry.family} / {entry.genus}")
    else:
        click.echo("Species:    unmatched")

    if decision.ambiguous:
        click.echo(f"Ambiguous between: {', '.join(decision.candidates)}")
    elif decision.rule is MatchRule.GENUS and not decision.candidates:
        click.echo("Genus found but no species epithet")


@main.command()
@click.argument('path', type=click.Path(exists=True, path_type=Path))
def reveal(path):
    """Show PATH in the system file manager."""
    try:
        reveal_in_file_manager(path)
    except BirdAtlasError as e:
        raise click.ClickException(str(e)) from e


@main.command(name='open')
@click.argument('path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
def open_command(path):
    """Open PATH with its default application."""
    try:
        open_file(path)
    except BirdAtlasError as e:
        raise click.ClickException(str(e)) from e


def split_name(name: str) -> Tuple[str, List[str]]:
    """Split a name into its file name and folder names, nearest folder first."""
    path = Path(name)
    ancestors = [part for part in reversed(path.parent.parts) if part not in (path.anchor, '.', '')]
    return path.name, ancestors


def render_report(response: ScanResponse, show_unmatched: bool = False) -> str:
    """
    Render a scan response as an indented text tree.

    Example output:
        Passeriformes (3)
          Turdidae (3)
            Turdus (3)
              Turdus merula - Eurasian Blackbird (2)
              Turdus philomelos - Song Thrush (1)

        2 of 12 species photographed
    """
    lines: List[str] = []
    for order in response.tree.orders:
        lines.append(f"{order.name} ({order.count})")
        for family in order.families:
            lines.append(f"  {family.name} ({family.count})")
            for genus in family.genera:
                lines.append(f"    {genus.name} ({genus.count})")
                for species in genus.species:
                    label = species.latin
                    if species.common_name:
                        label = f"{label} - {species.common_name}"
                    lines.append(f"      {label} ({species.count})")

    if not lines:
        lines.append("No photos matched any species.")

    stats = response.stats
    lines.append("")
    lines.append(f"{response.tree.species_count} of {response.total_species} species photographed")
    lines.append(
        f"Files: {stats.total_files} total, {stats.matched_files} matched, "
        f"{stats.unmatched_files} unmatched"
    )
    lines.append(f"Scan time: {format_duration(response.duration_seconds)}")

    if response.warnings:
        lines.append(f"Warnings: {len(response.warnings)}")

    if show_unmatched and response.unmatched:
        lines.append("")
        lines.append("Unmatched photos:")
        lines.extend(_indent(photo.path for photo in response.unmatched))

    return "\n".join(lines)


def _indent(values: Iterable[str]) -> List[str]:
    return [f"  {value}" for value in values]


if __name__ == '__main__':
    main()
