"""Command line sync client."""

import logging
from typing import Any, Optional

import click

from . import __version__
from .cli_progress import SyncProgressDisplay
from .driver import prepare_sync
from .exceptions import DavSyncError
from .options import DEFAULT_MAX_RESTARTS, build_run_options
from .output import OutputFormatter

logger = logging.getLogger(__name__)

PROG_NAME = "davsynccmd"


def configure_logging(silent: bool) -> None:
    logging.basicConfig(
        level=logging.WARNING if silent else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )
    logging.getLogger("davsync").setLevel(logging.WARNING if silent else logging.INFO)
    # one line per request is too much even for the verbose mode
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


@click.command(
    context_settings={"help_option_names": ["--help"]},
    epilog=(
        "A proxy can either be set manually using --httpproxy. "
        "Otherwise, the setting from the client configuration is used."
    ),
)
@click.argument("source_dir")
@click.argument("server_url")
@click.option("--silent", "-s", is_flag=True, help="Don't be so verbose")
@click.option(
    "--httpproxy",
    "proxy",
    metavar="PROXY",
    help="Specify a http proxy to use. Proxy is http://server:port",
)
@click.option("--trust", is_flag=True, help="Trust the SSL certification.")
@click.option("--exclude", metavar="FILE", help="Exclude list file")
@click.option(
    "--unsyncedfolders",
    metavar="FILE",
    help="File containing the list of unsynced folders (selective sync)",
)
@click.option("--user", "-u", metavar="NAME", help="Use NAME as the login name")
@click.option("--password", "-p", metavar="PASS", help="Use PASS as password")
@click.option("-n", "use_netrc", is_flag=True, help="Use netrc (5) for login")
@click.option(
    "--non-interactive",
    is_flag=True,
    help="Do not block execution with interaction",
)
@click.option(
    "--nonshib", is_flag=True, help="Use Non Shibboleth WebDAV authentication"
)
@click.option(
    "--davpath",
    metavar="PATH",
    help="Custom themed dav path, overrides --nonshib",
)
@click.option(
    "--max-sync-retries",
    type=click.IntRange(min=0),
    default=DEFAULT_MAX_RESTARTS,
    show_default=True,
    help="Retries maximum n times",
)
@click.option(
    "-h", "sync_hidden", is_flag=True, help="Sync hidden files, do not ignore them"
)
@click.version_option(
    __version__,
    "--version",
    "-v",
    prog_name=PROG_NAME,
    message="%(prog)s version %(version)s",
)
@click.pass_context
def main(
    ctx: Any,
    source_dir: str,
    server_url: str,
    silent: bool,
    proxy: Optional[str],
    trust: bool,
    exclude: Optional[str],
    unsyncedfolders: Optional[str],
    user: Optional[str],
    password: Optional[str],
    use_netrc: bool,
    non_interactive: bool,
    nonshib: bool,
    davpath: Optional[str],
    max_sync_retries: int,
    sync_hidden: bool,
) -> None:
    """Synchronize SOURCE_DIR with the WebDAV folder at SERVER_URL once."""
    configure_logging(silent)
    out = OutputFormatter(quiet=silent)

    try:
        options = build_run_options(
            source_dir,
            server_url,
            non_shib=nonshib,
            dav_path=davpath,
            proxy=proxy,
            user=user or "",
            password=password or "",
            use_netrc=use_netrc,
            interactive=not non_interactive,
            ignore_hidden_files=not sync_hidden,
            trust_ssl=trust,
            exclude=exclude,
            unsynced_folders=unsyncedfolders,
            max_restarts=max_sync_retries,
            silent=silent,
        )
        orchestrator = prepare_sync(options, output=out)
    except DavSyncError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    out.info(f"Syncing {options.source_dir} with {options.target_url}")
    try:
        if silent:
            result = orchestrator.run()
        else:
            with SyncProgressDisplay() as display:
                orchestrator.progress_callback = display.handle_event
                result = orchestrator.run()
    except DavSyncError as e:
        out.error(str(e))
        ctx.exit(1)
        return
    except KeyboardInterrupt:
        out.warning("Sync cancelled by user")
        ctx.exit(130)
        return

    if not result.success:
        out.warning("The last sync pass finished with errors")
    if result.another_sync_needed:
        out.warning(
            f"Another sync is needed, but the restart limit of "
            f"{options.max_restarts} was reached"
        )
    if result.success and not result.another_sync_needed:
        plural = "es" if result.passes != 1 else ""
        out.success(f"Sync finished after {result.passes} pass{plural}")
