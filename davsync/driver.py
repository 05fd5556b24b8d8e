"""One-shot sync driver: set up a run and hand it to the orchestrator."""

import logging
from typing import Optional

from .account import Account
from .config import ClientConfig, config
from .credentials import CredentialResolver, TextCredentials
from .journal import SyncJournal
from .options import RunOptions
from .orchestrator import EngineFactory, RunResult, SyncRetryOrchestrator
from .output import OutputFormatter
from .proxy import ProxyConfigurator
from .selective_sync import SelectiveSyncReconciler, read_selective_sync_file
from .sync.engine import ProgressCallback

logger = logging.getLogger(__name__)


def create_account(
    options: RunOptions, resolver: Optional[CredentialResolver] = None
) -> Account:
    """Build the account and resolve its credentials.

    Raises:
        DavSyncAccountError: If the target URL cannot be used
    """
    account = Account.from_target_url(options.target_url, options.dav_path)
    resolver = resolver or CredentialResolver()
    resolved = resolver.resolve(
        url_user=account.url_user,
        url_password=account.url_password,
        option_user=options.user,
        option_password=options.password,
        netrc_enabled=options.use_netrc,
        interactive=options.interactive,
        target_host=account.host,
        trust_ssl=options.trust_ssl,
    )
    account.set_credentials(TextCredentials(resolved, interactive=options.interactive))
    return account


def apply_selective_sync(options: RunOptions, journal: SyncJournal) -> None:
    """Reconcile the journal with ``--unsyncedfolders``, if given."""
    if not options.unsynced_folders:
        return
    folders = read_selective_sync_file(options.unsynced_folders)
    if folders is None:
        return
    SelectiveSyncReconciler().reconcile(journal, folders)


def prepare_sync(
    options: RunOptions,
    output: Optional[OutputFormatter] = None,
    client_config: Optional[ClientConfig] = None,
    resolver: Optional[CredentialResolver] = None,
    engine_factory: Optional[EngineFactory] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> SyncRetryOrchestrator:
    """Prepare everything a sync needs.

    Proxy, credentials, exclude lists and selective sync are all settled
    before the first pass is scheduled; any fatal setup error is raised
    from here before the engine starts.

    Raises:
        DavSyncAccountError: If the account cannot be initialized
        ExcludeListUnavailable: If no exclude list could be loaded
    """
    client_config = client_config or config
    proxy = ProxyConfigurator(client_config).configure(options.proxy)
    account = create_account(options, resolver)
    journal = SyncJournal(options.source_dir)

    orchestrator = SyncRetryOrchestrator(
        options,
        account,
        journal,
        proxy=proxy,
        system_exclude_file=client_config.system_exclude_file(),
        engine_factory=engine_factory,
        output=output,
        progress_callback=progress_callback,
    )
    orchestrator.prepare()
    apply_selective_sync(options, journal)
    return orchestrator


def run_sync(options: RunOptions, **kwargs) -> RunResult:
    """Prepare and run a sync; see :func:`prepare_sync` for the arguments."""
    return prepare_sync(options, **kwargs).run()
