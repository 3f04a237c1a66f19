import enum
import logging
import signal
import threading
import time
from typing import Iterable, List, Optional

from .interfaces import resolve_interfaces
from .relay import read_loop
from .sockets import RelayGroup, open_socket_set

logger = logging.getLogger(__name__)


class ReflectorState(enum.Enum):
    STARTING = "starting"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


class Reflector:
    """Owns the relay group and one reader thread per interface.

    start() resolves and binds every interface before any thread is spawned,
    so readers only ever see a complete, read-only relay group. Shutdown sets
    the cancellation event and closes the sockets; wait() joins the readers.
    """

    def __init__(self, interface_names: Iterable[str]):
        self.interface_names = list(interface_names)
        self.state = ReflectorState.STARTING
        self.group: Optional[RelayGroup] = None
        self.threads: List[threading.Thread] = []
        self.cancelled = threading.Event()
        self._shutdown_lock = threading.Lock()

    def start(self):
        try:
            interfaces = resolve_interfaces(self.interface_names)
            logger.info("Setting up %d interface(s)", len(interfaces))
            group = open_socket_set(interfaces)
        except Exception:
            self.state = ReflectorState.STOPPED
            raise

        with self._shutdown_lock:
            if self.cancelled.is_set():
                # Shutdown was requested while binding; never enter RUNNING
                group.close()
                self.state = ReflectorState.STOPPED
                logger.info("mDNS relay stopped before it started")
                return

            self.group = group
            for name, binding in group.items():
                thread = threading.Thread(
                    target=read_loop,
                    args=(binding, group, self.cancelled),
                    name=f"mdns-reader-{name}",
                    daemon=True,
                )
                thread.start()
                self.threads.append(thread)

            self.state = ReflectorState.RUNNING
        logger.info("mDNS relay started on %d interface(s): %s",
                    len(group), ", ".join(group))

    def request_shutdown(self):
        """Cancel the readers and close every socket. Safe to call repeatedly."""
        with self._shutdown_lock:
            if self.cancelled.is_set():
                return
            self.cancelled.set()
            if self.state is ReflectorState.RUNNING:
                self.state = ReflectorState.SHUTTING_DOWN
            logger.info("Shutting down mDNS relay")
            if self.group is not None:
                self.group.close()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Join every reader thread; True once the relay has stopped."""
        deadline = None if timeout is None else time.monotonic() + timeout
        for thread in self.threads:
            thread.join(None if deadline is None else max(0.0, deadline - time.monotonic()))
        alive = [t.name for t in self.threads if t.is_alive()]
        if alive:
            logger.warning("Reader threads still running: %s", ", ".join(alive))
            return False
        with self._shutdown_lock:
            if self.cancelled.is_set() and self.state is not ReflectorState.STOPPED:
                self.state = ReflectorState.STOPPED
                logger.info("mDNS relay stopped")
            return self.state is ReflectorState.STOPPED

    def stop(self, timeout: Optional[float] = None) -> bool:
        self.request_shutdown()
        return self.wait(timeout)

    def _handle_signal(self, signum, frame):
        logger.info("Received signal %s, shutting down", signal.Signals(signum).name)
        self.request_shutdown()

    def run(self):
        """Start, relay until SIGINT/SIGTERM or request_shutdown(), then stop."""
        self.start()
        if threading.current_thread() is threading.main_thread():
            signal.signal(signal.SIGINT, self._handle_signal)
            signal.signal(signal.SIGTERM, self._handle_signal)

        # Event.wait() with a timeout keeps the main thread responsive to signals
        while not self.cancelled.wait(1.0):
            pass
        self.wait()
