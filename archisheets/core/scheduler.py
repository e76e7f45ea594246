# archisheets/core/scheduler.py
"""
Single-flight autosave: at most one push per project sheet at a time.

Edits that arrive while a push is running overwrite a one-slot buffer; when
the push finishes, exactly one follow-up push sends the newest snapshot.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from archisheets.core.sync import push
from archisheets.models import Project

logger = logging.getLogger(__name__)

IDLE = "idle"
SYNCING = "syncing"
SAVED = "saved"
ERROR = "error"

# Settled status entries kept at most; the oldest are dropped first.
MAX_TRACKED_SHEETS = 500


@dataclass
class SyncStatus:
    state: str = IDLE
    last_error: Optional[str] = None
    updated_at: float = 0.0
    pushes: int = 0


class SyncScheduler:
    def __init__(
        self,
        push_fn: Callable[[str, Project], None] = push,
        max_tracked: int = MAX_TRACKED_SHEETS,
    ) -> None:
        self._push = push_fn
        self._max_tracked = max_tracked
        self._lock = threading.Lock()
        self._in_flight: set[str] = set()
        self._pending: Dict[str, Tuple[str, Project]] = {}
        self._status: Dict[str, SyncStatus] = {}

    def _set_state(self, sheet_id: str, state: str, error: Optional[str] = None) -> None:
        st = self._status.setdefault(sheet_id, SyncStatus())
        st.state = state
        st.updated_at = time.time()
        if state == ERROR:
            st.last_error = error
        elif state == SAVED:
            st.last_error = None

    def _prune(self, keep: str) -> None:
        """Drop the oldest entries of sheets with nothing in flight or pending."""
        excess = len(self._status) - self._max_tracked
        if excess <= 0:
            return
        settled = sorted(
            (
                sid for sid in self._status
                if sid != keep and sid not in self._in_flight and sid not in self._pending
            ),
            key=lambda sid: self._status[sid].updated_at,
        )
        for sid in settled[:excess]:
            del self._status[sid]

    def submit(self, token: str, project: Project) -> bool:
        """
        Buffer the latest snapshot of a project.

        Returns True when nothing is in flight for its sheet and the caller
        must run drain(); False when the snapshot was queued behind a running
        push (or the project has no sheet yet).
        """
        sheet_id = project.sheet_id
        if not sheet_id:
            return False
        with self._lock:
            self._pending[sheet_id] = (token, project)
            if sheet_id in self._in_flight:
                return False
            self._in_flight.add(sheet_id)
            self._set_state(sheet_id, SYNCING)
            return True

    def drain(self, sheet_id: str, raise_errors: bool = False) -> None:
        """
        Push buffered snapshots one by one until none is left.

        With raise_errors, the failure of the last push (if it failed) is
        re-raised after the in-flight flag has been released.
        """
        last_error: Optional[Exception] = None
        while True:
            with self._lock:
                item = self._pending.pop(sheet_id, None)
                if item is None:
                    self._in_flight.discard(sheet_id)
                    self._prune(keep=sheet_id)
                    break
                self._set_state(sheet_id, SYNCING)
            token, project = item
            try:
                self._push(token, project)
            except Exception as e:
                # no in-place retry; the next edit triggers the next attempt
                logger.exception("Push failed for sheet %s", sheet_id)
                last_error = e
                with self._lock:
                    self._set_state(sheet_id, ERROR, str(e))
            else:
                last_error = None
                with self._lock:
                    self._status[sheet_id].pushes += 1
                    self._set_state(sheet_id, SAVED)

        if raise_errors and last_error is not None:
            raise last_error

    def sync_now(self, token: str, project: Project) -> bool:
        """
        submit() + drain() on the calling thread, re-raising a failed push.
        Returns False when the snapshot was handed to a push already in flight.
        """
        if self.submit(token, project):
            self.drain(project.sheet_id, raise_errors=True)
            return True
        return False

    def status(self, sheet_id: str) -> SyncStatus:
        with self._lock:
            st = self._status.get(sheet_id)
            if st is None:
                return SyncStatus()
            return SyncStatus(st.state, st.last_error, st.updated_at, st.pushes)

    def is_in_flight(self, sheet_id: str) -> bool:
        with self._lock:
            return sheet_id in self._in_flight
