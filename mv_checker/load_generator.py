import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from logging import getLogger

from cassandra import DriverException
from cassandra.cluster import NoHostAvailable

from .config import WritesSettings
from .rows import Row, RowKeyGenerator
from .utils import format_rows_per_second, print_msg


logger = getLogger(__name__)


# Errors a disrupted node is expected to cause; anything else is a bug.
WRITE_ERRORS = (DriverException, NoHostAvailable)


@dataclass
class WriteStats:
    issued: int = 0
    written: int = 0
    failed: int = 0

    @property
    def in_flight(self):
        return self.issued - self.written - self.failed


class LoadGenerator:
    """Writes distinct rows to the base table until stopped.

    A single dispatcher thread owns the key generator and hands inserts to a
    worker pool; at most `concurrency` inserts are in flight at any time.
    Stopping is cooperative: the dispatcher checks the stop event before
    drawing every new key.
    """

    SLOT_WAIT_TIMEOUT = 0.1

    def __init__(self, scylla_api, key_generator: RowKeyGenerator, settings: WritesSettings):
        self.scylla_api = scylla_api
        self.key_generator = key_generator
        self.settings = settings
        self.stats_lock = threading.Lock()
        self.write_stats = WriteStats()
        self.stop_event = threading.Event()
        self.in_flight_slots = threading.BoundedSemaphore(settings.concurrency)
        self.executor = None
        self.dispatcher = None
        self.start_time = None
        self.last_report_time = 0.0
        self.last_reported_written = 0

    @property
    def running(self):
        return self.dispatcher is not None and self.dispatcher.is_alive()

    def stats(self) -> WriteStats:
        with self.stats_lock:
            return WriteStats(
                issued=self.write_stats.issued,
                written=self.write_stats.written,
                failed=self.write_stats.failed,
            )

    def start(self):
        if self.dispatcher is not None or self.stop_event.is_set():
            raise RuntimeError('load generator can be started only once')

        logger.info(
            f'starting writes: concurrency={self.settings.concurrency}, '
            f'consistency={self.settings.consistency}'
        )
        self.start_time = time.time()
        self.last_report_time = self.start_time
        self.executor = ThreadPoolExecutor(
            max_workers=self.settings.concurrency,
            thread_name_prefix='insert',
        )
        self.dispatcher = threading.Thread(
            target=self.dispatch_loop,
            name='LoadGeneratorDispatcher',
            daemon=True,
        )
        self.dispatcher.start()

    def dispatch_loop(self):
        while not self.stop_event.is_set():
            if not self.in_flight_slots.acquire(timeout=self.SLOT_WAIT_TIMEOUT):
                continue
            if self.stop_event.is_set():
                self.in_flight_slots.release()
                break

            row = self.key_generator.next_row()
            with self.stats_lock:
                self.write_stats.issued += 1
            future = self.executor.submit(self.insert, row)
            future.add_done_callback(self.on_insert_done)

            if self.settings.write_interval:
                self.stop_event.wait(self.settings.write_interval)

        logger.debug(f'dispatcher stopped after {self.key_generator.issued} rows')

    def insert(self, row: Row):
        try:
            for try_number in range(1, self.settings.insert_retries + 1):
                try:
                    self.scylla_api.insert_row(row, self.settings.consistency)
                    break
                except WRITE_ERRORS as e:
                    if try_number < self.settings.insert_retries:
                        logger.debug(f'insert {tuple(row)} failed (try {try_number}): {e}')
                        time.sleep(self.settings.retry_delay)
                        continue
                    logger.warning(f'insert {tuple(row)} failed after {try_number} tries: {e}')
                    with self.stats_lock:
                        self.write_stats.failed += 1
                    return
            self.on_written()
        finally:
            self.in_flight_slots.release()

    def on_insert_done(self, future):
        error = future.exception()
        if error is None:
            return
        logger.error(f'unexpected insert error: {error}', exc_info=error)
        with self.stats_lock:
            self.write_stats.failed += 1

    def on_written(self):
        with self.stats_lock:
            self.write_stats.written += 1
            written = self.write_stats.written
            now = time.time()
            rows_since_report = written - self.last_reported_written
            if rows_since_report < self.settings.report_every and (
                now - self.last_report_time < self.settings.report_interval
            ):
                return
            self.last_reported_written = written
            self.last_report_time = now
            failed = self.write_stats.failed

        rate = format_rows_per_second(written, now - self.start_time)
        print_msg(
            f'Wrote ~{written} rows ({failed} failed, {rate})... '
            f'Press Enter to stop the writes and verify.'
        )

    def stop(self):
        if not self.stop_event.is_set():
            logger.info('stopping writes')
        self.stop_event.set()

    def wait_stopped(self, timeout=None):
        """Wait until the dispatcher exits and every in-flight insert finished."""
        if self.dispatcher is not None:
            self.dispatcher.join(timeout)
        if self.executor is not None:
            self.executor.shutdown(wait=True)

        stats = self.stats()
        logger.info(
            f'writes stopped: issued={stats.issued}, written={stats.written}, failed={stats.failed}'
        )
        return stats
