"""
explorer-sync CLI

Commands:
  login   - Store an API token for the backend
  listen  - Sync new blocks and watch build directories for contract changes
  sync    - Sync a block range
  reset   - Reset a workspace
"""

import sys
import threading
from pathlib import Path
from typing import Optional, Tuple

import click

from .api import SyncClient
from .config import load_config, resolve_api_root, resolve_api_token, save_config
from .constants import POLL_INTERVAL_SECONDS, RECONNECT_DELAY_SECONDS
from .exceptions import ConfigurationError, NotAuthenticatedError, ProviderError, UploadError
from .feed import ChainFeed, sync_block_range
from .log import setup_logging
from .paths import get_config_path
from .provider import NodeProvider
from .session import SyncSession
from .watcher import DirectoryWatcher


def _fail(message: str) -> None:
    click.echo(message, err=True)
    sys.exit(1)


def _client(ctx: click.Context) -> SyncClient:
    """Build an authenticated client from the stored config and environment."""
    config = load_config(ctx.obj["config_path"])
    api_token = resolve_api_token(config)
    if not api_token:
        raise NotAuthenticatedError('You are not logged in, please run "explorer-sync login".')

    client = SyncClient(resolve_api_root(config, ctx.obj["api_root"]), api_token=api_token)
    if config.get("email"):
        click.echo(f"Logged in with {config['email']}")
    return client


def _session(ctx: click.Context, workspace: Optional[str], ast_upload: bool = False) -> SyncSession:
    client = _client(ctx)
    selected = client.set_workspace(workspace)
    click.echo(f'Using workspace "{selected.name}"')
    return SyncSession(client, ast_upload=ast_upload)


@click.group()
@click.version_option(package_name="explorer-sync", prog_name="explorer-sync")
@click.option("--api-root", default=None, help="Backend root URL")
@click.option(
    "--config-dir",
    envvar="EXPLORER_SYNC_CONFIG_DIR",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory of the local config file",
)
@click.option("--log-level", default=None, help="Log level (DEBUG, INFO, WARNING, ERROR)")
@click.option("--log-file", default=None, help="Also write logs to this file")
@click.pass_context
def cli(
    ctx: click.Context,
    api_root: Optional[str],
    config_dir: Optional[Path],
    log_level: Optional[str],
    log_file: Optional[str],
) -> None:
    """Keep an explorer workspace in sync with a local chain and its contracts."""
    setup_logging(log_level, log_file)
    ctx.ensure_object(dict)
    ctx.obj["api_root"] = api_root
    ctx.obj["config_path"] = get_config_path(config_dir)


@cli.command()
@click.option("--email", default=None, help="Account email")
@click.option("--password", default=None, help="Account password")
@click.option("--api-token", default=None, help="Use an API token instead of email/password")
@click.pass_context
def login(ctx: click.Context, email: Optional[str], password: Optional[str], api_token: Optional[str]) -> None:
    """Log in and store the API token locally."""
    config_path = ctx.obj["config_path"]
    config = load_config(config_path)
    client = SyncClient(resolve_api_root(config, ctx.obj["api_root"]))

    try:
        if api_token:
            client.set_api_token(api_token)
            user = client.fetch_user()
            email = user.get("email", email)
        else:
            email = email or click.prompt("Email")
            password = password or click.prompt(
                "Password (only used to fetch an API token, never stored)", hide_input=True
            )
            api_token = client.login(email, password)
    except (ConfigurationError, UploadError) as e:
        _fail(str(e))

    config["api_token"] = api_token
    if email:
        config["email"] = email
    if ctx.obj["api_root"]:
        config["api_root"] = ctx.obj["api_root"]
    save_config(config, config_path)

    click.echo('You are now logged in. Run "explorer-sync listen" to get started.')


@cli.command()
@click.option("-w", "--workspace", default=None, help="Workspace to connect to")
@click.option(
    "-d",
    "--dir",
    "directories",
    multiple=True,
    type=click.Path(file_okay=False, path_type=Path),
    help="Project directory to watch (repeatable)",
)
@click.option(
    "-s",
    "--server",
    is_flag=True,
    help="Only listen for blocks and let the backend fetch them; the node must be reachable from the backend",
)
@click.option("-l", "--local", is_flag=True, help="Only watch contracts, do not listen for blocks")
@click.option("-a", "--ast-upload", is_flag=True, help="Upload contract ASTs to decode storage")
@click.option(
    "--poll-interval", type=float, default=POLL_INTERVAL_SECONDS, show_default=True, help="Seconds between block polls"
)
@click.option(
    "--reconnect-delay",
    type=float,
    default=RECONNECT_DELAY_SECONDS,
    show_default=True,
    help="Seconds to wait before reconnecting to the node",
)
@click.pass_context
def listen(
    ctx: click.Context,
    workspace: Optional[str],
    directories: Tuple[Path, ...],
    server: bool,
    local: bool,
    ast_upload: bool,
    poll_interval: float,
    reconnect_delay: float,
) -> None:
    """Sync new blocks and watch build directories for contract changes."""
    try:
        session = _session(ctx, workspace, ast_upload=ast_upload)
        provider = None if local else NodeProvider(session.workspace.rpc_server)
    except (ConfigurationError, UploadError) as e:
        _fail(str(e))

    stop = threading.Event()
    workers = []

    if local:
        click.echo("Local option activated - only watching for contract changes")
        if server:
            click.echo("You also passed the server option, but it won't be used, transactions won't be watched.")
    else:
        feed = ChainFeed(
            session,
            provider,
            reconnect=True,
            server_sync=server,
            reconnect_delay=reconnect_delay,
            poll_interval=poll_interval,
        )
        workers.append(threading.Thread(target=feed.run, args=(stop,), name="chain-feed", daemon=True))
        if server:
            click.echo("Server option activated - only listening to transactions")

    if local or not server:
        watcher = DirectoryWatcher(session)
        watcher.watch(directories or [Path(".")])
        workers.append(threading.Thread(target=watcher.run, args=(stop,), name="artifact-watcher", daemon=True))

    for worker in workers:
        worker.start()

    try:
        while any(worker.is_alive() for worker in workers):
            for worker in workers:
                worker.join(timeout=0.5)
    except KeyboardInterrupt:
        click.echo("Stopping...")
    finally:
        stop.set()
        session.close(wait=False)


@cli.command()
@click.option("-f", "--from", "from_block", type=int, required=True, help="Starting block")
@click.option("-t", "--to", "to_block", type=int, required=True, help="Ending block (included)")
@click.option("-s", "--server", is_flag=True, help="Let the backend fetch and sync the blocks")
@click.option("-w", "--workspace", default=None, help="Workspace to connect to")
@click.pass_context
def sync(ctx: click.Context, from_block: int, to_block: int, server: bool, workspace: Optional[str]) -> None:
    """Sync a block range."""
    if from_block >= to_block:
        _fail('"to" must be greater than "from".')

    try:
        session = _session(ctx, workspace)
        provider = None if server else NodeProvider(session.workspace.rpc_server)
        sync_block_range(session, provider, from_block, to_block, server_sync=server)
    except (ConfigurationError, ProviderError, UploadError) as e:
        _fail(str(e))

    if server:
        click.echo("Blocks syncing queued successfully, they will appear on the dashboard soon!")
    session.close()


@cli.command()
@click.argument("workspace")
@click.pass_context
def reset(ctx: click.Context, workspace: str) -> None:
    """Reset a workspace."""
    click.echo(f'Resetting workspace "{workspace}"...')
    try:
        _client(ctx).reset_workspace(workspace)
    except (ConfigurationError, UploadError) as e:
        _fail(f"Error while resetting workspace: {e}")

    click.echo("Done!")


def main() -> None:
    """explorer-sync entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
