"""
Lifecycle Synchronizer - keeps traffic control in step with containers.

Bootstraps every running opted-in container, then follows start/die
events forever. Events are handled one at a time, in arrival order.
"""
import logging
import queue
import threading
import time
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ..errors import ShaperError, SubscriptionFailed, TeardownPartialFailure
from ..models.container import ManagedContainer
from .container_inventory import ContainerInventory
from .reflector_manager import ReflectorManager
from .state_store import NamespaceLinker
from .traffic_shaper import TrafficShaper

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    BOOTSTRAPPING = "bootstrapping"
    WATCHING = "watching"
    RECONNECTING = "reconnecting"


class Notification:
    """A typed lifecycle event taken off the Docker event stream."""

    START = "start"
    DIE = "die"

    def __init__(self, action: str, event: Dict[str, Any]):
        self.action = action
        self.event = event

    def __repr__(self):
        return f"<Notification(action='{self.action}')>"


class SyncResult:
    """Running totals of what the synchronizer did."""
    def __init__(self):
        self.applied: List[str] = []
        self.failed: List[str] = []
        self.torn_down: List[str] = []
        self.errors: List[str] = []

    def to_dict(self) -> Dict:
        """Convert to dictionary for API response."""
        return {
            "applied": self.applied,
            "failed": self.failed,
            "torn_down": self.torn_down,
            "errors": self.errors,
            "success_count": len(self.applied) + len(self.torn_down),
            "error_count": len(self.errors)
        }


class LifecycleSynchronizer:
    """
    State machine: bootstrapping -> watching <-> reconnecting.

    A pump thread reads the Docker event stream and queues typed
    notifications; the control loop handles them sequentially. Only a
    failure of the stream itself leads to reconnecting, after a fixed
    delay and without limit on attempts.
    """

    def __init__(
        self,
        inventory: ContainerInventory,
        shaper: TrafficShaper,
        reflectors: ReflectorManager,
        namespaces: NamespaceLinker,
        reconnect_delay: float = 5.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.inventory = inventory
        self.shaper = shaper
        self.reflectors = reflectors
        self.namespaces = namespaces
        self.reconnect_delay = reconnect_delay
        self.sleep = sleep

        self.state = SyncState.BOOTSTRAPPING
        self.notifications: "queue.Queue[Notification]" = queue.Queue()
        self.result = SyncResult()
        self.reconnects = 0

    def run(self, stop: Optional[threading.Event] = None):
        """
        Bootstrap, then handle events until stop is set.

        Raises:
            DaemonUnavailable: If the initial listing fails
        """
        stop = stop or threading.Event()

        self.bootstrap()

        pump = threading.Thread(
            target=self.pump_events, args=(stop,), name="event-pump", daemon=True
        )
        pump.start()

        while not stop.is_set():
            try:
                notification = self.notifications.get(timeout=1.0)
            except queue.Empty:
                continue
            self.handle(notification)

    def bootstrap(self) -> SyncResult:
        """Apply policy to every running opted-in container."""
        self.state = SyncState.BOOTSTRAPPING
        containers = self.inventory.snapshot()
        logger.info("Found %d container link(s) to shape", len(containers))

        for container in containers:
            self.apply(container)

        self.state = SyncState.WATCHING
        return self.result

    def pump_events(self, stop: threading.Event):
        """Move events from the Docker stream to the notification queue."""
        while not stop.is_set():
            try:
                events = self.inventory.subscribe()
                self.state = SyncState.WATCHING
                for event in events:
                    action = event.get("Action") or event.get("status")
                    if action in (Notification.START, Notification.DIE):
                        self.notifications.put(Notification(action, event))
                    if stop.is_set():
                        return
                raise SubscriptionFailed("event stream closed")
            except Exception as e:
                # Any failure of the stream itself; handling errors never get here
                if stop.is_set():
                    return
                self.state = SyncState.RECONNECTING
                self.reconnects += 1
                logger.error(
                    "Event subscription failed: %s, trying again in %s seconds",
                    e, self.reconnect_delay
                )
                self.sleep(self.reconnect_delay)

    def handle(self, notification: Notification):
        if notification.action == Notification.START:
            self.on_start(notification.event)
        elif notification.action == Notification.DIE:
            self.on_die(notification.event)

    def on_start(self, event: Dict[str, Any]):
        try:
            containers = self.inventory.from_start_event(event)
        except ShaperError as e:
            logger.error("Start event not handled: %s", e)
            self.result.errors.append(str(e))
            return

        for container in containers:
            self.apply(container)

    def on_die(self, event: Dict[str, Any]) -> bool:
        """
        Tear down what was created for a stopped container.

        The reflector and the namespace handle are removed independently;
        both failures are reported together.
        """
        try:
            container = self.inventory.from_stop_event(event)
        except ShaperError as e:
            logger.error("Die event not handled: %s", e)
            self.result.errors.append(str(e))
            return False

        logger.info("Container stopped, name: %s, id: %s", container.name, container.id)

        failures = []
        try:
            self.reflectors.deprovision(container.name)
        except ShaperError as e:
            failures.append(f"reflector: {e}")
        try:
            self.namespaces.unlink(container.name)
        except OSError as e:
            failures.append(f"namespace handle: {e}")

        if failures:
            error = TeardownPartialFailure(container.name, failures)
            logger.error("%s", error)
            self.result.errors.append(str(error))
            return False

        self.result.torn_down.append(container.name)
        return True

    def apply(self, container: ManagedContainer) -> bool:
        try:
            self.shaper.apply(container)
        except ShaperError as e:
            logger.error(
                "Traffic control failed, container: %s, id: %s, error: %s",
                container.name, container.id, e
            )
            self.result.failed.append(container.name)
            self.result.errors.append(str(e))
            return False

        logger.info("Traffic control applied, %s", container.summary())
        self.result.applied.append(container.name)
        return True

    def status(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "reconnects": self.reconnects,
            "pending": self.notifications.qsize(),
            **self.result.to_dict(),
        }
