import queue
from typing import Optional

from cimis_irrigation.network.messages import Acknowledgment
from cimis_irrigation.utils.logger import get_logger


class AcknowledgmentQueue:
    """
    Bounded hand-off of acknowledgments from the messaging receive thread (single
    writer) to the sequencer (single reader). The only state shared between the two.
    """

    def __init__(self, maxsize: int = 32):
        self._queue: queue.Queue[Acknowledgment] = queue.Queue(maxsize=maxsize)
        self.logger = get_logger("AcknowledgmentQueue")

    def put(self, ack: Acknowledgment) -> bool:
        """Called from the receive thread. Never blocks; drops the acknowledgment when full."""
        try:
            self._queue.put_nowait(ack)
        except queue.Full:
            self.logger.warning(f"Acknowledgment queue full, dropping {ack}.")
            return False
        return True

    def get(self, timeout: float) -> Optional[Acknowledgment]:
        """Waits up to timeout seconds for the next acknowledgment. Returns None on timeout."""
        try:
            return self._queue.get(timeout=max(timeout, 0.0))
        except queue.Empty:
            return None

    def drain(self) -> list[Acknowledgment]:
        """Removes and returns everything currently queued."""
        drained = []
        while True:
            try:
                drained.append(self._queue.get_nowait())
            except queue.Empty:
                return drained
