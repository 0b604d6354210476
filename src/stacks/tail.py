"""Background stack event tailing.

An EventTailer runs in its own thread while an orchestrator blocks on a
control plane wait. It prints each stack event once, then exits when the
orchestrator sends its CancelSignal. CancelSignal.send() blocks until the
tailer has left its loop, so no event output follows a finished command.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

from clients.base import ControlPlaneClient, StackEvent
from common import TailerBusyError
from stacks.stack import Stack

logger = logging.getLogger(__name__)

# Remote stack names with a live tailer
_active: set[str] = set()
_active_lock = threading.Lock()

# Events this far before TailSession.since are still printed, to absorb
# drift between the local clock and control plane timestamps
CLOCK_SKEW = timedelta(seconds=5)


class CancelSignal:
    """Single-use stop signal with a blocking handoff.

    Attached to at most one consumer and sent at most once. send() returns
    only after the consumer calls acknowledge(); with no consumer attached
    it returns immediately.
    """

    def __init__(self) -> None:
        self._stop = threading.Event()
        self._acknowledged = threading.Event()
        self._lock = threading.Lock()
        self._attached = False
        self._sent = False

    @property
    def sent(self) -> bool:
        return self._sent

    def attach(self) -> None:
        """Register the consumer that will acknowledge the signal."""
        with self._lock:
            if self._attached:
                raise RuntimeError("cancel signal already has a consumer")
            self._attached = True

    def send(self) -> None:
        """Signal the consumer to stop and wait for it to accept."""
        with self._lock:
            if self._sent:
                raise RuntimeError("cancel signal already sent")
            self._sent = True
            attached = self._attached
        self._stop.set()
        if attached:
            self._acknowledged.wait()

    def wait(self, timeout: Optional[float]) -> bool:
        """Block up to timeout seconds; True once the signal has been sent."""
        return self._stop.wait(timeout)

    def acknowledge(self) -> None:
        self._acknowledged.set()


@dataclass
class TailSession:
    """State for one tailing run.

    Attributes:
        stack: Stack being watched
        command: Label printed with each event (e.g. 'UPDATE', 'DELETE')
        cancel: Signal that stops the tailer
        printed: Event IDs already printed; owned by the tailer thread
        since: Events older than this, less CLOCK_SKEW, are skipped
    """
    stack: Stack
    command: str
    cancel: CancelSignal = field(default_factory=CancelSignal)
    printed: set[str] = field(default_factory=set)
    since: Optional[datetime] = None


def _as_utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


class EventTailer:
    """Polls stack events in a daemon thread until cancelled."""

    def __init__(self, client: ControlPlaneClient, session: TailSession,
                 interval: float = 1.0, log: Optional[logging.Logger] = None):
        self.client = client
        self.session = session
        self.interval = interval
        self.log = log or logger
        self._thread: Optional[threading.Thread] = None

    @property
    def stack_name(self) -> str:
        return self.session.stack.stack_name

    def start(self) -> None:
        """Launch the tailer thread without blocking the caller.

        Raises:
            TailerBusyError: Another tailer is live for the same stack
        """
        with _active_lock:
            if self.stack_name in _active:
                raise TailerBusyError(f"Already tailing events for [{self.stack_name}]")
            _active.add(self.stack_name)

        self.session.cancel.attach()
        self._thread = threading.Thread(
            target=self._run, name=f"tail-{self.stack_name}", daemon=True)
        try:
            self._thread.start()
        except RuntimeError:
            self._release()
            raise

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _release(self) -> None:
        with _active_lock:
            _active.discard(self.stack_name)
        self.session.cancel.acknowledge()

    def _run(self) -> None:
        self.log.debug(f"Tailing {self.session.command} events for {self.stack_name}")
        try:
            while not self.session.cancel.wait(self.interval):
                self.poll()
        finally:
            self._release()

    def poll(self) -> int:
        """Fetch events once and print the unseen ones. Returns the count printed."""
        try:
            events = self.client.fetch_recent_stack_events(self.stack_name)
        except Exception as e:
            self.log.warning(f"Error fetching events for {self.stack_name}: {e}")
            return 0

        printed = 0
        for event in events:
            if event.event_id in self.session.printed:
                continue
            self.session.printed.add(event.event_id)
            if self._is_stale(event):
                continue
            self._print(event)
            printed += 1
        return printed

    def _is_stale(self, event: StackEvent) -> bool:
        since = self.session.since
        if since is None or event.timestamp is None:
            return False
        return _as_utc(event.timestamp) < _as_utc(since) - CLOCK_SKEW

    def _print(self, event: StackEvent) -> None:
        ts = event.timestamp.strftime('%Y-%m-%d %H:%M:%S') if event.timestamp else '-'
        self.log.info(f"{ts} - {self.session.command} - {self.stack_name} - {event.message}")
