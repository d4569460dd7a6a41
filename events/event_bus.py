"""
Central event bus for tracking and broadcasting backend events
"""

import time
import threading
from typing import Dict, Any, List, Callable, Optional
from queue import Queue, Empty
from collections import defaultdict
from datetime import datetime
import uuid

from core.logging_config import get_logger

logger = get_logger(__name__)


class SystemEvent:
    """Represents a system event"""

    def __init__(self, event_type: str, data: Dict[str, Any], source: Optional[str] = None):
        self.id = str(uuid.uuid4())
        self.type = event_type
        self.data = data
        self.source = source or "system"
        self.timestamp = time.time()
        self.datetime = datetime.now().isoformat()

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary"""
        return {
            "id": self.id,
            "type": self.type,
            "data": self.data,
            "source": self.source,
            "timestamp": self.timestamp,
            "datetime": self.datetime
        }


class EventBus:
    """Central event bus for backend-wide event tracking"""

    def __init__(self, max_history: int = 1000):
        self.listeners: Dict[str, List[Callable]] = defaultdict(list)
        self.event_queue: Queue = Queue()
        self.event_history: List[SystemEvent] = []
        self.max_history = max_history
        self._lock = threading.Lock()
        self._running = True
        self._processor_thread = threading.Thread(
            target=self._process_events, name="event-bus", daemon=True
        )
        self._processor_thread.start()

        self.event_counts = defaultdict(int)

    def emit(self, event_type: str, data: Dict[str, Any], source: Optional[str] = None):
        """Emit an event to the bus"""
        event = SystemEvent(event_type, data, source)
        self.event_queue.put(event)

    def on(self, event_type: str, callback: Callable[[SystemEvent], None]):
        """Register a listener for specific event type"""
        with self._lock:
            self.listeners[event_type].append(callback)

    def on_all(self, callback: Callable[[SystemEvent], None]):
        """Register a listener for all events"""
        self.on("*", callback)

    def off(self, event_type: str, callback: Callable[[SystemEvent], None]):
        """Remove a listener"""
        with self._lock:
            if callback in self.listeners[event_type]:
                self.listeners[event_type].remove(callback)

    def _process_events(self):
        """Process events from the queue"""
        while self._running:
            try:
                event = self.event_queue.get(timeout=0.1)
            except Empty:
                continue

            try:
                self.event_counts[event.type] += 1

                self.event_history.append(event)
                if len(self.event_history) > self.max_history:
                    self.event_history.pop(0)

                with self._lock:
                    specific = list(self.listeners.get(event.type, []))
                    wildcard = list(self.listeners.get("*", []))

                for listener in specific + wildcard:
                    try:
                        listener(event)
                    except Exception:
                        logger.exception(f"Error in event listener for {event.type}")
            finally:
                self.event_queue.task_done()

    def flush(self, timeout: float = 2.0) -> bool:
        """
        Wait until every queued event has been delivered.

        Returns:
            True if the queue drained before the timeout
        """
        deadline = time.monotonic() + timeout
        while self.event_queue.unfinished_tasks:
            if time.monotonic() >= deadline:
                return False
            time.sleep(0.01)
        return True

    def get_stats(self) -> Dict[str, Any]:
        """Get event bus statistics"""
        with self._lock:
            listener_counts = {
                event_type: len(listeners)
                for event_type, listeners in self.listeners.items()
            }
        return {
            "total_events": sum(self.event_counts.values()),
            "event_counts": dict(self.event_counts),
            "queue_size": self.event_queue.qsize(),
            "history_size": len(self.event_history),
            "listener_counts": listener_counts,
        }

    def get_recent_events(self, count: int = 50, event_type: Optional[str] = None) -> List[Dict[str, Any]]:
        """Get recent events from history"""
        events = list(self.event_history)

        if event_type:
            events = [e for e in events if e.type == event_type]

        return [e.to_dict() for e in events[-count:]]

    def shutdown(self):
        """Shutdown the event bus"""
        self._running = False
        if self._processor_thread.is_alive():
            self._processor_thread.join(timeout=2.0)


# Global event bus instance
event_bus = EventBus()


# Event type constants
class EventTypes:
    # Configuration events
    CONFIG_LOADED = "config.loaded"
    CONFIG_SAVED = "config.saved"
    CONFIG_ERROR = "config.error"

    # Connection validation events
    CONNECTION_VALIDATION_STARTED = "connection.validation_started"
    CONNECTION_VALIDATED = "connection.validated"
    CONNECTION_VALIDATION_FAILED = "connection.validation_failed"

    # Command dispatch events
    COMMAND_INVOKED = "command.invoked"
    COMMAND_COMPLETED = "command.completed"
    COMMAND_FAILED = "command.failed"

    # Bridge events
    BRIDGE_CLIENT_CONNECT = "bridge.client_connect"
    BRIDGE_CLIENT_DISCONNECT = "bridge.client_disconnect"

    # System events
    SYSTEM_START = "system.start"
    SYSTEM_STOP = "system.stop"
    SYSTEM_ERROR = "system.error"
