"""Command-line interface for the CloudMount backup application."""

import sys
from pathlib import Path
from typing import Optional

import click
import requests
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from . import __version__
from .auth.token_auth import BearerTokenAuth, generate_token
from .config.settings import DEFAULT_CONFIG_PATH, BackupConfig, DestinationConfig, TriggerConfig
from .errors import ConfigurationError
from .models import SyncResult
from .sync.backup_manager import BackupManager
from .utils.file_utils import FileHelper
from .utils.logging import setup_logging

console = Console()

REMOTE_CONNECT_TIMEOUT = 5


def _load_config(ctx: click.Context) -> BackupConfig:
    """Load the configuration once per invocation and configure logging."""
    if 'config' not in ctx.obj:
        config = BackupConfig.from_yaml(ctx.obj['config_path'])
        level = "DEBUG" if ctx.obj['verbose'] else config.logging.level
        setup_logging(level, log_file=config.log_path, log_to_console=ctx.obj['verbose'])
        ctx.obj['config'] = config
    return ctx.obj['config']


def _load_manager(ctx: click.Context) -> BackupManager:
    return BackupManager(_load_config(ctx))


def _fail(error) -> None:
    console.print(f"❌ Error: {error}", style="red bold")
    sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option('--config', '-c', 'config_path',
              type=click.Path(dir_okay=False, path_type=Path),
              default=DEFAULT_CONFIG_PATH,
              help='Path to configuration file')
@click.option('--verbose', '-v', is_flag=True, help='Log debug output to the console')
@click.pass_context
def cli(ctx: click.Context, config_path: Path, verbose: bool):
    """CloudMount Backup Tool

    Back up local files and folders to a cloud-mounted directory
    (Google Drive, OneDrive, Dropbox, ...) with rsync.
    """
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config_path
    ctx.obj['verbose'] = verbose


@cli.command()
@click.option('--mount-root', '-m',
              prompt='Cloud mount root (absolute path)',
              help='Absolute path of the mounted cloud folder')
@click.option('--machine-name', default=None, help='Optional per-device subfolder')
@click.option('--force', '-f', is_flag=True, help='Overwrite an existing configuration file')
@click.pass_context
def init(ctx: click.Context, mount_root: str, machine_name: Optional[str], force: bool):
    """Initialize a new configuration file."""
    config_path: Path = ctx.obj['config_path']
    if config_path.exists() and not force:
        if not click.confirm(f"Configuration file {config_path} already exists. Overwrite?"):
            return

    console.print("🚀 Creating new configuration file...")

    try:
        backup_config = BackupConfig(
            destination=DestinationConfig(mount_root=mount_root, machine_name=machine_name),
            trigger=TriggerConfig(token=generate_token()),
        )
        backup_config.to_yaml(config_path)
    except Exception as e:
        _fail(e)

    console.print(f"✅ Configuration saved to {config_path}", style="green")
    console.print(f"   Backups go to {backup_config.destination_path()}")
    console.print("\n📝 Next steps:")
    console.print("1. Add files and folders with 'cloudmount-backup add <path>'")
    console.print("2. Run 'cloudmount-backup test' to check your setup")
    console.print("3. Run 'cloudmount-backup backup' to start backing up")
    console.print("4. Run 'cloudmount-backup serve' to enable the local trigger endpoint")


@cli.command()
@click.argument('paths', nargs=-1, required=True)
@click.pass_context
def add(ctx: click.Context, paths):
    """Add files or directories to the backup list."""
    try:
        manager = _load_manager(ctx)
    except Exception as e:
        _fail(e)

    failed = 0
    for path in paths:
        try:
            entry = manager.store.add_entry(path)
        except Exception as e:
            console.print(f"❌ {e}", style="red")
            failed += 1
            continue
        console.print(f"✅ Added {entry.item_type.value} {entry.path}", style="green")

    if failed:
        sys.exit(1)


@cli.command()
@click.argument('entry_id')
@click.pass_context
def remove(ctx: click.Context, entry_id: str):
    """Remove an entry from the backup list by id."""
    try:
        manager = _load_manager(ctx)
        entry = manager.store.remove_entry(entry_id)
    except Exception as e:
        _fail(e)

    console.print(f"🗑️ Removed {entry.path}", style="green")


@cli.command('list')
@click.pass_context
def list_entries(ctx: click.Context):
    """List tracked files and directories."""
    try:
        manager = _load_manager(ctx)
    except Exception as e:
        _fail(e)

    entries = manager.store.list_entries()
    if not entries:
        console.print("No entries yet. Add some with 'cloudmount-backup add <path>'.", style="yellow")
        return

    table = Table(title="Backup Entries")
    table.add_column("ID", style="dim")
    table.add_column("Type", style="magenta")
    table.add_column("Path", style="cyan")
    table.add_column("Last Synced", justify="right")

    for entry in entries:
        last_synced = entry.last_synced.strftime('%Y-%m-%d %H:%M:%S') if entry.last_synced else "never"
        table.add_row(entry.id, entry.item_type.value, entry.path, last_synced)

    console.print(table)


@cli.command()
@click.pass_context
def backup(ctx: click.Context):
    """Sync all entries to the destination now."""
    try:
        manager = _load_manager(ctx)
        console.print(f"🚀 Backing up {len(manager.store)} entries to {manager.destination}")

        with console.status("Running rsync..."):
            result = manager.run_backup()
    except Exception as e:
        _fail(e)

    _display_backup_result(manager, result)


def _display_backup_result(manager: BackupManager, result):
    """Display a backup result in a table."""
    summary = manager.get_backup_summary(result)

    table = Table(title="Backup Result")
    table.add_column("Destination", style="cyan")
    table.add_column("Files", justify="right", style="green")
    table.add_column("Directories", justify="right", style="green")
    table.add_column("Data Sent", justify="right")
    table.add_column("Exit Code", justify="right")

    table.add_row(
        summary['destination'],
        str(summary['files_transferred']),
        str(summary['dirs_transferred']),
        FileHelper.format_file_size(summary['bytes_transferred']),
        str(summary['exit_code']),
    )
    console.print(table)

    report = manager.orchestrator.snapshot().last_report
    if report is not None and report.has_issues:
        rprint(f"\n⚠️ [yellow]{report.summary()}[/yellow]")
        for failure in report.failures:
            rprint(f"   • [red]{failure.describe()}[/red]")

    if summary['has_changes']:
        console.print("\n✅ Backup completed", style="green bold")
    else:
        console.print("\n✅ Backup completed, everything was already up to date", style="green bold")


@cli.command()
@click.pass_context
def status(ctx: click.Context):
    """Show configuration and entry status."""
    try:
        config = _load_config(ctx)
        manager = BackupManager(config)
    except Exception as e:
        _fail(e)

    entries = manager.store.list_entries()
    synced = [entry.last_synced for entry in entries if entry.last_synced]

    console.print("☁️ [bold]Destination:[/bold]")
    rprint(f"   • {manager.destination}")

    console.print("\n📁 [bold]Entries:[/bold]")
    rprint(f"   • Tracked: {len(entries)}")
    rprint(f"   • Never synced: {len(entries) - len(synced)}")
    if synced:
        rprint(f"   • Last sync: {max(synced).strftime('%Y-%m-%d %H:%M:%S')}")

    console.print("\n🔌 [bold]Trigger Service:[/bold]")
    state = "✅ Enabled" if config.trigger.enabled else "❌ Disabled"
    rprint(f"   • {state} on {config.trigger.base_url}")


@cli.command()
@click.pass_context
def test(ctx: click.Context):
    """Check rsync, the mount and the destination."""
    try:
        manager = _load_manager(ctx)
    except Exception as e:
        _fail(e)

    console.print("🔍 Checking environment...\n")
    results = manager.check_environment()

    labels = {
        'rsync': "rsync available",
        'mount_root': "Mount root present",
        'destination': "Destination writable",
        'entries': "Entries configured",
        'trigger_token': "Trigger token set",
    }

    table = Table(title="Environment Check Results")
    table.add_column("Check", style="cyan")
    table.add_column("Status", style="magenta")

    for check, ok in results.items():
        status_text = "✅ OK" if ok else "❌ Failed"
        status_style = "green" if ok else "red"
        table.add_row(labels.get(check, check), f"[{status_style}]{status_text}[/{status_style}]")

    console.print(table)

    if all(results.values()):
        console.print("\n🎉 Ready to back up!", style="green bold")
    else:
        console.print("\n⚠️ Some checks failed. Check your configuration.", style="yellow bold")
        sys.exit(1)


@cli.command()
@click.pass_context
def serve(ctx: click.Context):
    """Run the local HTTP trigger service."""
    from .service.trigger_service import run_server

    try:
        config = _load_config(ctx)
        manager = BackupManager(config)
        console.print(f"🔌 Trigger service on {config.trigger.base_url} (Ctrl+C to stop)")
        run_server(manager, config)
    except KeyboardInterrupt:
        console.print("\n👋 Trigger service stopped")
    except Exception as e:
        _fail(e)


@cli.command()
@click.pass_context
def token(ctx: click.Context):
    """Generate a new trigger token and save it to the configuration."""
    try:
        config = _load_config(ctx)
        config.trigger.token = generate_token()
        config.to_yaml(ctx.obj['config_path'])
    except Exception as e:
        _fail(e)

    console.print("🔑 New trigger token saved", style="green")
    click.echo(config.trigger.token)


@cli.group()
def remote():
    """Talk to a running trigger service."""
    pass


def _remote_request(ctx: click.Context, method: str, endpoint: str) -> dict:
    """Call the trigger service and return the decoded JSON body."""
    config = _load_config(ctx)
    if not config.trigger.token:
        raise ConfigurationError("no trigger token configured; run 'cloudmount-backup token'")
    url = f"{config.trigger.base_url}{endpoint}"
    headers = BearerTokenAuth.header_for(config.trigger.token)

    # No read timeout: a sync runs as long as rsync does
    response = requests.request(method, url, headers=headers, timeout=(REMOTE_CONNECT_TIMEOUT, None))
    body = response.json()
    if not response.ok:
        message = body.get('message', body.get('error', response.reason))
        raise click.ClickException(f"{response.status_code} {message}")
    return body


@remote.command('status')
@click.pass_context
def remote_status(ctx: click.Context):
    """Show the status of a running trigger service."""
    try:
        body = _remote_request(ctx, 'GET', '/status')
    except Exception as e:
        _fail(e)

    rprint(f"🔌 [bold]Status:[/bold] {body['status']}")
    rprint(f"   • Entries: {body['entries_count']}")
    rprint(f"   • Destination: {body['destination']}")

    last_result = body.get('last_result')
    if last_result:
        rprint(f"   • Last sync: {last_result['synced_at']} "
               f"({last_result['files_transferred']} files, "
               f"{last_result['dirs_transferred']} directories, "
               f"{FileHelper.format_file_size(last_result['bytes_transferred'])})")
    if body.get('last_error'):
        rprint(f"   • Last error: [red]{body['last_error']}[/red]")


@remote.command('sync')
@click.pass_context
def remote_sync(ctx: click.Context):
    """Trigger a sync on a running trigger service."""
    try:
        with console.status("Waiting for remote sync..."):
            body = _remote_request(ctx, 'POST', '/sync')
    except Exception as e:
        _fail(e)

    result = SyncResult.from_dict(body)
    console.print(
        f"✅ Remote sync finished: {result.files_transferred} files, "
        f"{result.dirs_transferred} directories, {FileHelper.format_file_size(result.bytes_transferred)} sent",
        style="green",
    )


if __name__ == '__main__':
    cli()
