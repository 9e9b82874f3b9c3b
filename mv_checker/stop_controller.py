import sys
from logging import getLogger

from .load_generator import LoadGenerator, WriteStats
from .utils import print_msg


logger = getLogger(__name__)


class StopController:
    """Ends the write phase on a single line of operator input.

    The transition writing -> draining -> verifying happens once; writes
    can not be resumed.
    """

    PROMPT = 'Starting the writes, please kill and restart one node while the writes are being sent.'

    def __init__(self, load_generator: LoadGenerator, input_stream=None):
        self.load_generator = load_generator
        self.input_stream = input_stream if input_stream is not None else sys.stdin
        self.triggered = False

    def wait_for_operator(self) -> WriteStats:
        if self.triggered:
            raise RuntimeError('writes were already stopped')
        self.triggered = True

        print_msg(self.PROMPT)
        line = self.input_stream.readline()
        if not line:
            logger.info('operator input closed, treating it as the stop signal')

        self.load_generator.stop()
        print_msg('Stopping the writes, waiting for in-flight inserts to finish...')
        stats = self.load_generator.wait_stopped()
        print_msg(f'Stopped the writes: {stats.written} rows written, {stats.failed} failed.')
        return stats
