"""Command-line interface for the segmented archive application."""

import sys
from pathlib import Path

import click
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from .config.settings import BackupConfig
from .destinations.restore import restore_directory
from .exceptions import ConfigError, SegmentedArchiveError
from .sources.segment_tree import get_exclusions, normalize_path
from .sync.backup_manager import BackupManager, BackupReport, SegmentStatus
from .sync.fingerprint_store import FingerprintStore
from .utils.logging import setup_logging

console = Console()

STATUS_STYLES = {
    SegmentStatus.ARCHIVED: "green",
    SegmentStatus.SKIPPED: "yellow",
    SegmentStatus.MISSING: "magenta",
    SegmentStatus.FAILED: "red",
    SegmentStatus.PENDING: "cyan",
}


def _load_config(config: Path) -> BackupConfig:
    try:
        return BackupConfig.from_yaml(config)
    except ConfigError as e:
        console.print(f"❌ Error: {e}", style="red bold")
        sys.exit(1)


@click.group()
@click.version_option(version="1.0.0")
def cli():
    """Segmented Archive Backup Tool

    Fingerprints each configured directory (segment) and packs it into a
    tar.gz archive, optionally split into parts, whenever it has changed.
    """
    pass


@cli.command()
@click.option('--config', '-c',
              type=click.Path(dir_okay=False, path_type=Path),
              default=Path('config.yaml'),
              help='Path to configuration file')
@click.option('--dry-run', '-d',
              is_flag=True,
              help='Show which segments changed without archiving them')
def backup(config: Path, dry_run: bool):
    """Archive every segment that changed since the last run."""
    backup_config = _load_config(config)
    console.print(f"✅ Configuration loaded from {config}", style="green")

    log_file = backup_config.get_log_file()
    try:
        setup_logging(log_level=backup_config.log_level, log_file=log_file)
    except OSError as e:
        console.print(f"❌ Error: Cannot open log file {log_file}: {e}", style="red bold")
        sys.exit(1)

    if dry_run:
        console.print("🔍 DRY RUN MODE - No archives will be written", style="yellow bold")

    try:
        report = BackupManager(backup_config).run(dry_run=dry_run)
    except SegmentedArchiveError as e:
        console.print(f"❌ Error: {e}", style="red bold")
        sys.exit(1)

    _display_backup_results(report)

    if report.aborted:
        console.print(f"❌ {report.error}", style="red bold")
        sys.exit(1)


def _display_backup_results(report: BackupReport):
    """Display backup results in a table."""
    table = Table(title="Backup Results")
    table.add_column("Segment", style="cyan")
    table.add_column("Status", style="magenta")
    table.add_column("Fingerprint")
    table.add_column("Parts", justify="right")
    table.add_column("Duration", justify="right")
    table.add_column("Error", style="red")

    for result in report.results:
        style = STATUS_STYLES.get(result.status, "white")
        table.add_row(
            result.name,
            f"[{style}]{result.status.value}[/{style}]",
            result.fingerprint or "-",
            str(len(result.parts)),
            f"{result.duration:.1f}s",
            result.error or result.fingerprint_error or "",
        )

    console.print(table)

    summary = report.get_summary()
    rprint(f"\n📊 [bold]Summary:[/bold]")
    rprint(f"   • Segments: {summary['total_segments']}")
    rprint(f"   • Archived: [green]{summary['archived']}[/green] ({summary['total_parts']} parts)")
    rprint(f"   • Skipped: [yellow]{summary['skipped']}[/yellow]")
    if summary['pending']:
        rprint(f"   • Would archive: [cyan]{summary['pending']}[/cyan]")
    if summary['missing']:
        rprint(f"   • Missing: [magenta]{summary['missing']}[/magenta]")
    if summary['failed']:
        rprint(f"   • Failed: [red]{summary['failed']}[/red]")


@cli.command()
@click.option('--config', '-c',
              type=click.Path(dir_okay=False, path_type=Path),
              default=Path('config.yaml'),
              help='Path to configuration file')
def status(config: Path):
    """Show configured segments and their stored fingerprints."""
    backup_config = _load_config(config)
    fingerprints = FingerprintStore(backup_config.fingerprint_file).load()
    all_paths = list(backup_config.segments.values())

    console.print(f"📦 [bold]Output path:[/bold] {backup_config.output_path}")
    if backup_config.ignore:
        console.print(f"🚫 [bold]Ignoring:[/bold] {', '.join(backup_config.ignore)}")

    table = Table(title="Segments")
    table.add_column("Segment", style="cyan")
    table.add_column("Path")
    table.add_column("Exists")
    table.add_column("Nested Exclusions")
    table.add_column("Stored Fingerprint", style="magenta")

    for name, path in backup_config.segments.items():
        exists = normalize_path(path).exists()
        exclusions = get_exclusions(all_paths, path)
        table.add_row(
            name,
            str(path),
            "[green]yes[/green]" if exists else "[red]no[/red]",
            "\n".join(str(p) for p in exclusions) or "-",
            fingerprints.get(name, "-"),
        )

    console.print(table)


@cli.command()
@click.option('--config', '-c',
              type=click.Path(dir_okay=False, path_type=Path),
              default=Path('config.yaml'),
              help='Path to save configuration file')
def init(config: Path):
    """Initialize a new configuration file."""
    if config.exists():
        if not click.confirm(f"Configuration file {config} already exists. Overwrite?"):
            return

    console.print("🚀 Creating new configuration file...")

    sample_config = {
        'output_path': '/var/backups/segments',
        'root_path': '/',
        'fingerprint_file': '/var/backups/segments.hashes',
        'log_file': '/var/log/segmented-archive/backup-%D.log',
        'compression_level': 6,
        'max_size_bytes': 4 * 1024 * 1024 * 1024,
        'segments': {
            'home': '/home',
            'projects': '/home/user/projects',
            'etc': '/etc',
        },
        'ignore': ['*.tmp', '*/__pycache__', '*/node_modules'],
    }

    backup_config = BackupConfig(**sample_config)
    backup_config.to_yaml(config)

    console.print(f"✅ Configuration saved to {config}", style="green")
    console.print("\n📝 Next steps:")
    console.print("1. Edit the segments and paths to match your setup")
    console.print("2. Optionally set pre_script, post_script and skip_script")
    console.print("3. Run 'segmented-archive status' to check the segments")
    console.print("4. Run 'segmented-archive backup' to start backing up")


@cli.command()
@click.argument('archive_dir', type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.argument('restore_root', type=click.Path(file_okay=False, path_type=Path))
@click.option('--keep-parts', is_flag=True, help='Keep .partNNN files after joining them')
def restore(archive_dir: Path, restore_root: Path, keep_parts: bool):
    """Restore every archive in ARCHIVE_DIR below RESTORE_ROOT."""
    setup_logging(log_level="INFO")
    try:
        restored = restore_directory(archive_dir, restore_root, keep_parts=keep_parts)
    except SegmentedArchiveError as e:
        console.print(f"❌ Error: {e}", style="red bold")
        sys.exit(1)

    if not restored:
        console.print(f"⚠️ No archives found in {archive_dir}", style="yellow")
        return

    for destination in restored:
        console.print(f"✅ Restored to {destination}", style="green")


if __name__ == '__main__':
    cli()
