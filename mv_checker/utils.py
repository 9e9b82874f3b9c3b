import signal
import threading
from logging import getLogger

logger = getLogger(__name__)


class GracefulKiller:
    """Turns SIGINT / SIGTERM into a flag that long-running loops poll.

    wait() sleeps until the timeout expires or a signal arrives, so a
    settle delay never outlives a Ctrl+C.
    """

    def __init__(self, install_handlers=True):
        self._event = threading.Event()
        if install_handlers:
            signal.signal(signal.SIGINT, self.exit_gracefully)
            signal.signal(signal.SIGTERM, self.exit_gracefully)

    def exit_gracefully(self, signum=None, frame=None):
        if signum is not None:
            logger.info(f'received signal {signum}, stopping')
        self._event.set()

    def wait(self, timeout):
        """Returns True if the process was asked to stop during the wait."""
        return self._event.wait(timeout)


def format_rows_per_second(rows, seconds):
    if seconds <= 0:
        return '0 rows/s'
    return f'{rows / seconds:.0f} rows/s'


def print_msg(message):
    print(message, flush=True)
