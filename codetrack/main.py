"""CodeTrack Sync - Main entry point."""

import logging
import os
import signal
import sys
import threading
from typing import Optional

from . import __version__
from .activity import ActivityBuffer, ActivityRecorder
from .auth import CredentialResolver, Credentials, DeviceAuthFlow, KeychainManager
from .clock import line_timestamp, localized_now
from .config import RESTART_FIELDS, TIMER_FIELDS, Config, setup_logging
from .editor import ConfigWatcher, DisposableStack, FileSystemEventSource
from .errors import AuthenticationError, CloneError, RepositoryProvisioningError
from .notifications import APP_TITLE, notify_error, send_notification
from .report import build_report
from .scheduler import SchedulerState, SyncScheduler
from .state import StateStore
from .sync import DiffMetricsCollector, GitHubClient, RepositoryProvisioner, SyncEngine, SyncOutcome
from .ui.tray import TrayIcon, TrayState

logger = logging.getLogger(__name__)


class CodeTrackApp:
    """Main application orchestrator.

    Activation resolves credentials, provisions the tracking repository and
    its clone, then starts the workspace watcher and the sync loop. Tray
    commands and config-file changes are routed to the right component.
    """

    def __init__(self, config: Optional[Config] = None, tray: Optional[TrayIcon] = None):
        """Initialize the application."""
        self.config = config or Config.load()
        setup_logging(self.config.debug_mode)

        logger.info(f"CodeTrack Sync {__version__} starting...")
        logger.info(f"Workspace: {self.config.workspace_root}")

        self.keychain = KeychainManager()
        self.auth_flow = DeviceAuthFlow(self.config.oauth_client_id, on_user_code=self._on_user_code)
        self.resolver = CredentialResolver(self.config, keychain=self.keychain, auth_flow=self.auth_flow)

        self.state = StateStore()
        self.buffer = ActivityBuffer()
        self.recorder = ActivityRecorder(
            self.state,
            workspace_root=self.config.workspace_root,
            time_zone=self.config.time_zone,
            track_opens=self.config.track_file_opens,
            buffer=self.buffer,
        )
        self.metrics = DiffMetricsCollector()
        self.editor = FileSystemEventSource(
            self.config.workspace_root,
            ignored_paths=[self.config.local_repo_path],
        )

        self.tray = tray or TrayIcon(
            on_sync_now=self._on_sync_now,
            on_show_report=self.show_report,
            on_quit=self._on_quit,
        )
        self.tray.set_paths(str(Config.get_log_file()), str(Config.get_config_file()))

        self.engine: Optional[SyncEngine] = None
        self.scheduler: Optional[SyncScheduler] = None
        self.credentials: Optional[Credentials] = None
        self.disposables = DisposableStack()

        # State
        self._sync_failed = False
        self._shutdown_done = False
        self._shutdown_event = threading.Event()

    # -- Activation -------------------------------------------------------

    def activate(self) -> bool:
        """Sign in, provision the tracking repository and start observing.

        Returns False (after notifying) when activation cannot complete.
        """
        try:
            self._activate()
        except (AuthenticationError, RepositoryProvisioningError, CloneError) as e:
            notify_error(f"Activation failed: {e}")
            self.tray.set_state(TrayState.ERROR, str(e))
            return False
        except Exception as e:
            logger.exception("Unexpected error during activation")
            send_notification(f"{APP_TITLE} error", f"Activation failed: {e}")
            self.tray.set_state(TrayState.ERROR, str(e))
            return False
        return True

    def _activate(self) -> None:
        self.tray.set_state(TrayState.WAITING_AUTH)
        self.credentials = self.resolver.resolve()
        self.tray.set_user(self.credentials.username)
        self.tray.set_state(TrayState.STARTING, "Preparing tracking repository...")

        with GitHubClient(self.credentials.token) as github:
            provisioner = RepositoryProvisioner(github, self.config.repo_name, branch=self.config.branch)
            provisioner.ensure_repository(self.credentials.username)
            git = provisioner.ensure_local_clone(
                self.config.local_repo_path,
                self.credentials.username,
                self.credentials.token,
            )

        self.engine = SyncEngine(
            buffer=self.buffer,
            git=git,
            credentials=self.resolver,
            metrics=self.metrics,
            counter=self.state,
            repo_path=self.config.local_repo_path,
            repo_name=self.config.repo_name,
            summary_filename=self.config.summary_filename,
            branch=self.config.branch,
            prefix=self.config.commit_message_prefix,
            time_zone=self.config.time_zone,
        )
        self.scheduler = SyncScheduler(
            engine=self.engine,
            recorder=self.recorder,
            editor=self.editor,
            metrics=self.metrics,
            workspace_root=self.config.workspace_root,
            interval_minutes=self.config.commit_interval,
            on_countdown=self.tray.set_countdown,
            on_state_change=self._on_scheduler_state,
            on_outcome=self._on_sync_outcome,
            on_error=self._on_sync_error,
        )

        self.disposables.push(self.editor.subscribe(self.recorder))
        self.disposables.push(self.editor.start())
        self.disposables.push(ConfigWatcher(Config.get_config_file(), self.apply_config).start())
        self.scheduler.start()

        self.tray.set_state(TrayState.IDLE)
        logger.info(f"Tracking activity for {self.credentials.username} in {self.config.repo_name}")

    def _on_user_code(self, user_code: str, verification_uri: str) -> None:
        logger.info(f"Enter code {user_code} at {verification_uri}")
        self.tray.set_state(TrayState.WAITING_AUTH, f"Enter code {user_code} on GitHub")
        send_notification(APP_TITLE, f"Enter code {user_code} at {verification_uri}")

    # -- Event handlers ---------------------------------------------------

    def _on_scheduler_state(self, state: SchedulerState) -> None:
        if state is SchedulerState.SYNCING:
            self._sync_failed = False
            self.tray.set_state(TrayState.SYNCING)
        elif state is SchedulerState.IDLE:
            if self._sync_failed:
                self.tray.set_state(TrayState.ERROR, "Last commit failed")
            else:
                self.tray.set_state(TrayState.IDLE)

    def _on_sync_outcome(self, outcome: SyncOutcome) -> None:
        if outcome.committed:
            self.tray.set_last_commit(line_timestamp(localized_now(self.config.time_zone)))

    def _on_sync_error(self, message: str) -> None:
        self._sync_failed = True
        notify_error(message)

    def _on_sync_now(self) -> None:
        if self.scheduler is None:
            logger.info("Not activated yet, nothing to commit")
            return
        self.scheduler.trigger_sync()

    def show_report(self) -> str:
        """Write the metrics report to the log and announce it."""
        report = build_report(
            self.state,
            tracking_stats=self.metrics.diff_stats(self.config.local_repo_path),
            workspace_stats=self.metrics.diff_stats(self.config.workspace_root),
        )
        logger.info(f"Metrics report:\n{report}")
        send_notification(
            APP_TITLE,
            f"{self.state.commit_count} commits recorded. Full report written to the log file.",
        )
        return report

    def apply_config(self, new_config: Config) -> None:
        """Apply a reloaded configuration.

        Interval, prefix and time zone take effect immediately; everything
        that shapes the watcher or the clone needs a restart.
        """
        changed = self.config.changed_fields(new_config)
        if not changed:
            return
        self.config = new_config
        self.resolver.update_config(new_config)

        if "debug_mode" in changed:
            setup_logging(new_config.debug_mode)
        if changed & TIMER_FIELDS and self.scheduler is not None:
            self.scheduler.reconfigure(
                new_config.commit_interval,
                new_config.commit_message_prefix,
                new_config.time_zone,
            )
        restart = sorted(changed & RESTART_FIELDS)
        if restart:
            logger.warning(f"Restart required to apply: {', '.join(restart)}")
            send_notification(APP_TITLE, "Restart CodeTrack Sync to apply the new settings")

    def _on_quit(self) -> None:
        """Handle quit action."""
        logger.info("Quit requested")
        self._shutdown_event.set()
        self.auth_flow.cancel()
        self.tray.stop()

    def _signal_handler(self, signum, frame) -> None:
        """Handle shutdown signals."""
        logger.info(f"Received signal {signum}")
        self._shutdown_event.set()
        self.auth_flow.cancel()
        self.tray.stop()

    # -- Lifecycle --------------------------------------------------------

    def run(self) -> None:
        """Run the application until the tray quits."""
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

        # Sign-in may wait on the browser; keep the tray responsive meanwhile.
        threading.Thread(target=self.activate, daemon=True).start()

        logger.info("CodeTrack Sync running")
        try:
            self.tray.run_blocking()
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        """Shutdown the application. Safe to call multiple times."""
        if self._shutdown_done:
            return
        self._shutdown_done = True
        logger.info("Shutting down...")

        if self.scheduler is not None:
            self.scheduler.stop()
        self.disposables.dispose_all()

        logger.info("Shutdown complete")

    def __enter__(self) -> "CodeTrackApp":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()


class SingleInstanceLock:
    """File-based single-instance lock using advisory locking.

    Two agents sharing one local clone would race on commits.
    """

    def __init__(self, path: Optional[str] = None):
        self._file = None
        self._path = path or os.path.join(Config.get_config_dir(), ".codetrack-sync.lock")

    def acquire(self) -> bool:
        """Try to acquire the lock. Returns True on success."""
        os.makedirs(os.path.dirname(self._path), exist_ok=True)
        self._file = open(self._path, "a+")  # noqa: SIM115
        try:
            if sys.platform == "win32":
                import msvcrt
                msvcrt.locking(self._file.fileno(), msvcrt.LK_NBLCK, 1)
            else:
                import fcntl
                fcntl.flock(self._file, fcntl.LOCK_EX | fcntl.LOCK_NB)
            self._file.seek(0)
            self._file.truncate(0)
            self._file.write(str(os.getpid()))
            self._file.flush()
            return True
        except OSError:
            self._file.close()
            self._file = None
            return False

    def release(self) -> None:
        """Release the lock and clean up."""
        if not self._file:
            return
        try:
            if sys.platform == "win32":
                import msvcrt
                try:
                    msvcrt.locking(self._file.fileno(), msvcrt.LK_UNLCK, 1)
                except OSError:
                    pass
            else:
                import fcntl
                fcntl.flock(self._file, fcntl.LOCK_UN)
            self._file.close()
            os.unlink(self._path)
        except OSError:
            pass
        self._file = None


def main() -> None:
    """Main entry point."""
    lock = SingleInstanceLock()
    if not lock.acquire():
        print("CodeTrack Sync is already running.")
        sys.exit(0)

    try:
        with CodeTrackApp() as app:
            app.run()
    finally:
        lock.release()


if __name__ == "__main__":
    main()
