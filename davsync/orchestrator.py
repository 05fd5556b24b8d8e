"""Bounded repetition of sync passes."""

import logging
import queue
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Union

from .account import Account
from .excludes import ExcludeListLoader
from .journal import SyncJournal
from .options import RunOptions
from .output import OutputFormatter
from .proxy import ProxySettings
from .sync.context import SyncContext, create_context
from .sync.engine import ProgressCallback, SyncEngine

logger = logging.getLogger(__name__)


class RetryState(str, Enum):
    """States of the retry loop."""

    IDLE = "idle"
    RUNNING = "running"
    FINISHED = "finished"
    NEEDS_RESTART = "needs_restart"
    DONE = "done"


@dataclass
class RunResult:
    """Outcome of a run."""

    passes: int
    restarts: int
    success: bool
    """Whether the last pass completed without errors"""

    another_sync_needed: bool
    """True if the restart budget ran out while another sync was needed"""


EngineFactory = Callable[[SyncContext], SyncEngine]


class SyncRetryOrchestrator:
    """Runs the engine and repeats the pass while another sync is needed.

    The low-level context is rebuilt from the same options before every
    pass; credentials, journal and selective sync state are set up once by
    the caller and reused. At most ``options.max_restarts`` restarts follow
    the initial pass, and only one pass runs at a time.
    """

    def __init__(
        self,
        options: RunOptions,
        account: Account,
        journal: SyncJournal,
        proxy: Optional[ProxySettings] = None,
        system_exclude_file: Union[str, Path, None] = None,
        engine_factory: Optional[EngineFactory] = None,
        output: Optional[OutputFormatter] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        self.options = options
        self.account = account
        self.journal = journal
        self.proxy = proxy or ProxySettings()
        self.system_exclude_file = system_exclude_file
        self.engine_factory = engine_factory or self._create_engine
        self.output = output or OutputFormatter(quiet=options.silent)
        self.progress_callback = progress_callback
        self.state = RetryState.IDLE
        self.restart_count = 0
        self.passes = 0
        self._context: Optional[SyncContext] = None

    def build_context(self) -> SyncContext:
        """Create a fresh low-level context from the run options.

        Raises:
            ExcludeListUnavailable: If no exclude list could be loaded
        """
        context = create_context(
            self.options.source_dir, self.options.target_url, self.proxy
        )
        context.set_log_level(self.options.silent)
        context.ignore_hidden_files = self.options.ignore_hidden_files
        try:
            ExcludeListLoader(context).load(
                self.system_exclude_file, self.options.exclude
            )
        except Exception:
            context.destroy()
            raise
        return context

    def prepare(self) -> SyncContext:
        """Build the context of the first pass ahead of time.

        Lets fatal setup errors surface before anything is scheduled.
        """
        if self._context is None:
            self._context = self.build_context()
        return self._context

    def _create_engine(self, context: SyncContext) -> SyncEngine:
        client = context.open_client(self.account)
        return SyncEngine(
            context,
            client,
            self.journal,
            output=self.output,
            progress_callback=self.progress_callback,
            minimum_file_age_for_upload=0,
        )

    def _run_pass(self, context: SyncContext, executor: ThreadPoolExecutor) -> tuple[bool, bool]:
        """Run one pass and wait for its completion signal.

        Returns:
            Tuple of (success, another_sync_needed)
        """
        engine = self.engine_factory(context)
        completed: "queue.Queue[bool]" = queue.Queue(maxsize=1)
        engine.add_finished_callback(completed.put)

        self.state = RetryState.RUNNING
        future = engine.start(executor)
        success = completed.get()

        error = future.exception()
        if error is not None:
            logger.error(f"Sync pass aborted: {error}", exc_info=error)
        return success, engine.another_sync_needed

    def run(self) -> RunResult:
        """Run passes until no further sync is needed or the budget is spent."""
        context = self.prepare()
        self._context = None
        success = False
        another_sync_needed = False

        with ThreadPoolExecutor(max_workers=1, thread_name_prefix="davsync-sync") as executor:
            while True:
                try:
                    success, another_sync_needed = self._run_pass(context, executor)
                finally:
                    context.destroy()
                self.passes += 1

                if not another_sync_needed:
                    self.state = RetryState.FINISHED
                    break

                self.state = RetryState.NEEDS_RESTART
                if self.restart_count >= self.options.max_restarts:
                    logger.warning(
                        "Another sync is needed, but not done because restart "
                        f"count is exceeded {self.restart_count}"
                    )
                    break

                self.restart_count += 1
                logger.info(
                    f"Restarting sync, because another sync is needed {self.restart_count}"
                )
                self.state = RetryState.IDLE
                context = self.build_context()

        self.state = RetryState.DONE
        return RunResult(
            passes=self.passes,
            restarts=self.restart_count,
            success=success,
            another_sync_needed=another_sync_needed,
        )
