"""
SLO External Service Integrations
==================================

External services for the SLO list:
- APScheduler ticker for periodic refresh cycles
- YAML registry file watcher
"""

import threading
from pathlib import Path
from typing import Awaitable, Callable, Optional

import yaml
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from slo_r.core import ConfigurationException
from slo_r.shared.infrastructure.logging import get_logger
from slo_r.slo.application import IPollScheduler
from slo_r.slo.domain import RegistryConfig

logger = get_logger(__name__)

REFRESH_JOB_ID = "slo_list_refresh"


class PollScheduler(IPollScheduler):
    """
    Wrapper for APScheduler running the refresh ticker.

    Holds at most one interval job. Arming replaces the existing job in a
    single ``replace_existing`` call, so two tickers never coexist.
    """

    def __init__(self, interval_seconds: int = 60):
        self.interval_seconds = interval_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._shut_down = False
        self.arm_count = 0

    def arm(self, job: Callable[[], Awaitable[None]]) -> None:
        """Start (or restart) the ticker with the given coroutine function."""
        if self._shut_down:
            logger.warning("Refresh ticker already shut down, not arming")
            return

        if self._scheduler is None:
            self._scheduler = AsyncIOScheduler()

        self._scheduler.add_job(
            job,
            "interval",
            seconds=self.interval_seconds,
            id=REFRESH_JOB_ID,
            name="SLO List Refresh",
            misfire_grace_time=self.interval_seconds,
            coalesce=True,
            max_instances=1,
            replace_existing=True
        )
        if not self._scheduler.running:
            self._scheduler.start()

        self.arm_count += 1
        logger.info(
            "Refresh ticker armed",
            extra={"interval_seconds": self.interval_seconds, "arm_count": self.arm_count}
        )

    def cancel(self) -> None:
        """Remove the ticker job (safe to call when not armed)."""
        if self._scheduler is None:
            return
        try:
            self._scheduler.remove_job(REFRESH_JOB_ID)
        except JobLookupError:
            return
        logger.info("Refresh ticker cancelled")

    def shutdown(self) -> None:
        """Stop the scheduler for good."""
        if self._shut_down:
            return
        self._shut_down = True
        self.cancel()
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        logger.info("Refresh ticker stopped")

    @property
    def is_armed(self) -> bool:
        if self._scheduler is None or self._shut_down:
            return False
        return self._scheduler.get_job(REFRESH_JOB_ID) is not None

    @property
    def job(self):
        """The scheduled APScheduler job, if any."""
        if self._scheduler is None:
            return None
        return self._scheduler.get_job(REFRESH_JOB_ID)


class RegistryFileHandler(FileSystemEventHandler):
    """Watchdog event handler for registry file changes."""

    def __init__(self, config_manager: "RegistryConfigManager", config_path: Path):
        self.config_manager = config_manager
        self.config_path = config_path
        super().__init__()

    def on_modified(self, event):
        """Handle file modification event."""
        if event.is_directory:
            return
        if Path(event.src_path).resolve() == self.config_path.resolve():
            logger.info(f"Registry file changed: {event.src_path}")
            self.config_manager.reload()


class RegistryConfigManager:
    """
    Thread-safe registry configuration manager with hot-reload support.

    Uses watchdog to monitor file changes. ``on_change`` is called with the
    new configuration after every successful reload; it runs on the
    watchdog thread.
    """

    def __init__(self, on_change: Optional[Callable[[RegistryConfig], None]] = None):
        self._config: Optional[RegistryConfig] = None
        self._lock = threading.Lock()
        self._path: Optional[Path] = None
        self._observer = None
        self._on_change = on_change

    def load(self, path: Path) -> RegistryConfig:
        """Initial configuration load."""
        self._path = Path(path)
        self._config = self._load_from_file(self._path)
        return self._config

    def _load_from_file(self, path: Path) -> RegistryConfig:
        """Load and parse YAML registry file."""
        if not path.exists():
            logger.warning(f"Registry file not found: {path}, tracking no entities")
            return RegistryConfig()

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ConfigurationException(f"Registry file {path} must contain a mapping")
        return RegistryConfig(**data)

    def reload(self) -> bool:
        """Reload configuration from file."""
        if self._path is None:
            return False

        try:
            new_config = self._load_from_file(self._path)
        except (OSError, yaml.YAMLError, ValueError, ConfigurationException) as e:
            logger.error(f"Failed to reload registry file: {e}")
            return False

        with self._lock:
            changed = new_config != self._config
            self._config = new_config
        logger.info("Registry configuration reloaded", extra={"changed": changed})

        if changed and self._on_change is not None:
            self._on_change(new_config)
        return True

    def start_watching(self) -> None:
        """
        Start watching the registry file for changes.

        Skips watching if the file doesn't exist or the platform has no
        usable file notifications.
        """
        if self._path is None:
            raise RuntimeError("Registry not loaded. Call load() first.")

        if not self._path.exists():
            logger.info(f"Registry file doesn't exist, skipping file watch: {self._path}")
            return

        try:
            self._observer = Observer()
            handler = RegistryFileHandler(self, self._path)
            self._observer.schedule(handler, str(self._path.parent), recursive=False)
            self._observer.start()
            logger.info(f"Started watching registry file: {self._path}")
        except OSError as e:
            logger.warning(f"File watching not available, using static registry: {e}")
            self._observer = None

    def stop_watching(self) -> None:
        """Stop watching the registry file (safe to call even if not watching)."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    @property
    def config(self) -> RegistryConfig:
        """Get current configuration."""
        if self._config is None:
            raise RuntimeError("Registry configuration not loaded")
        return self._config
