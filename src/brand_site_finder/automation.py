from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from threading import Event, Lock, Thread
from typing import Any, Optional

from .config import load_config
from .pipeline import run_once
from .scheduler import BatchScheduler


logger = logging.getLogger(__name__)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class RunSettings:
    brands_file: str = "brands.json"
    scope: Optional[str] = None
    limit: Optional[int] = None
    export: bool = True


class DiscoveryController:
    """Runs one discovery pass at a time in a background thread.

    ``stop()`` sets the shared stop event; the scheduler notices it at the
    next brand boundary, checkpoints and returns.
    """

    def __init__(self) -> None:
        self._settings = RunSettings()
        self._thread: Optional[Thread] = None
        self._stop_event = Event()
        self._settings_lock = Lock()
        self._run_lock = Lock()
        self._state_lock = Lock()

        self._scheduler: Optional[BatchScheduler] = None
        self._last_run_started_at: Optional[str] = None
        self._last_run_finished_at: Optional[str] = None
        self._last_error: Optional[str] = None
        self._last_result: Optional[dict[str, Any]] = None
        self._run_count: int = 0

    @property
    def running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    def update_settings(self, updates: dict[str, Any]) -> None:
        with self._settings_lock:
            for key, value in updates.items():
                if value is None or not hasattr(self._settings, key):
                    continue
                if key == "limit":
                    value = max(int(value), 1)
                setattr(self._settings, key, value)

    def _snapshot_settings(self) -> RunSettings:
        with self._settings_lock:
            return RunSettings(**asdict(self._settings))

    def _attach(self, scheduler: BatchScheduler) -> None:
        with self._state_lock:
            self._scheduler = scheduler

    def _run(self, trigger: str) -> Optional[dict[str, Any]]:
        if not self._run_lock.acquire(blocking=False):
            return None

        settings = self._snapshot_settings()
        try:
            with self._state_lock:
                self._last_run_started_at = _utc_now()
                self._last_error = None
                self._scheduler = None

            report = run_once(
                settings.brands_file,
                config=load_config(),
                stop_event=self._stop_event,
                scope=settings.scope,
                limit=settings.limit,
                export=settings.export,
                on_scheduler=self._attach,
            )
            result = {"trigger": trigger, "report": report.to_dict()}
            with self._state_lock:
                self._last_result = result
                self._last_run_finished_at = _utc_now()
                self._run_count += 1
            return result
        except Exception as exc:
            logger.exception("Discovery run failed: %s", exc)
            with self._state_lock:
                self._last_error = str(exc)
                self._last_run_finished_at = _utc_now()
            return None
        finally:
            self._run_lock.release()

    def start(self, updates: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        if updates:
            self.update_settings(updates)

        if self.running:
            return self.status()

        self._stop_event = Event()
        self._thread = Thread(target=self._run, args=("manual",), daemon=True, name="brand-discovery-runner")
        self._thread.start()
        return self.status()

    def stop(self) -> dict[str, Any]:
        if self._thread and self._thread.is_alive():
            self._stop_event.set()
            self._thread.join(timeout=30)
        return self.status()

    def status(self) -> dict[str, Any]:
        settings = self._snapshot_settings()
        with self._state_lock:
            scheduler = self._scheduler
            status = {
                "running": self.running,
                "busy": self._run_lock.locked(),
                "stop_requested": self._stop_event.is_set(),
                "settings": asdict(settings),
                "last_run_started_at": self._last_run_started_at,
                "last_run_finished_at": self._last_run_finished_at,
                "last_error": self._last_error,
                "last_result": self._last_result,
                "run_count": self._run_count,
            }
        if scheduler is not None:
            state = scheduler.state
            status["progress"] = {
                **scheduler.progress(),
                "processed": state.total_processed,
                "api_requests": state.request_count,
                "quota_remaining": state.quota.remaining,
            }
        else:
            status["progress"] = None
        return status
