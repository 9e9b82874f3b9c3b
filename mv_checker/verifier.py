from concurrent.futures import ThreadPoolExecutor
from logging import getLogger

from cassandra import DriverException
from cassandra.cluster import NoHostAvailable

from .comparison import PassReport, Snapshot, compare_snapshots, error_result
from .config import NodeEndpoint, VerifierSettings
from .utils import GracefulKiller, print_msg


logger = getLogger(__name__)


READ_ERRORS = (DriverException, NoHostAvailable)

BASE_CONSISTENCY = 'quorum'
VIEW_CONSISTENCY = 'one'


class ConvergenceVerifier:
    """Repeatedly checks that every node's view holds exactly the base rows.

    Each pass reads the base table once at QUORUM, then the view from every
    node through a session pinned to that node at ONE, so a replica that
    missed view updates can not be hidden by read repair. The loop has no
    termination condition of its own unless max_passes or exit_on_match is
    configured; it is meant to be stopped by the operator.
    """

    def __init__(
        self,
        base_api,
        node_apis: list[tuple[NodeEndpoint, object]],
        settings: VerifierSettings,
        killer: GracefulKiller | None = None,
    ):
        self.base_api = base_api
        self.node_apis = node_apis
        self.settings = settings
        self.killer = killer if killer is not None else GracefulKiller(install_handlers=False)
        self.pass_number = 0
        self.last_report = None
        self.interrupted = False

    def fetch_base_snapshot(self) -> Snapshot:
        return self.base_api.read_base_rows(BASE_CONSISTENCY)

    def compare_node(self, endpoint: NodeEndpoint, node_api, base: Snapshot):
        try:
            view = node_api.read_view_rows(VIEW_CONSISTENCY)
        except READ_ERRORS as e:
            logger.warning(f'failed to read view from node #{endpoint.index} ({endpoint.address}): {e}')
            return error_result(endpoint.index, endpoint.address, len(base), e)
        except Exception as e:
            logger.error(f'unexpected error reading view from node #{endpoint.index} ({endpoint.address}): {e}', exc_info=True)
            return error_result(endpoint.index, endpoint.address, len(base), e)
        return compare_snapshots(base, view, node_index=endpoint.index, node=endpoint.address)

    def compare_nodes(self, base: Snapshot):
        workers = max(1, min(self.settings.parallel_reads, len(self.node_apis)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix='view-read') as executor:
            futures = [
                executor.submit(self.compare_node, endpoint, node_api, base)
                for endpoint, node_api in self.node_apis
            ]
            # futures are kept in cluster order, completion order is irrelevant
            return [future.result() for future in futures]

    def run_pass(self) -> PassReport:
        self.pass_number += 1
        report = PassReport(pass_number=self.pass_number)
        print_msg('Verifying view table integrity...')

        try:
            base = self.fetch_base_snapshot()
        except READ_ERRORS as e:
            logger.error(f'pass #{self.pass_number}: failed to read the base table: {e}')
            report.error = f'{type(e).__name__}: {e}'
        except Exception as e:
            logger.error(f'pass #{self.pass_number}: unexpected error reading the base table: {e}', exc_info=True)
            report.error = f'{type(e).__name__}: {e}'
        else:
            report.base_count = len(base)
            report.results = self.compare_nodes(base)
            for result in report.results:
                print_msg(result.format(self.settings.max_diff_rows))

        print_msg(report.summary())
        self.last_report = report
        return report

    def is_finished(self, report: PassReport) -> bool:
        if self.settings.exit_on_match and report.all_matched:
            logger.info('all views match the base table, stopping verification')
            return True
        if self.settings.max_passes and self.pass_number >= self.settings.max_passes:
            logger.info(f'reached max_passes={self.settings.max_passes}, stopping verification')
            return True
        return False

    def run(self) -> PassReport | None:
        logger.info(f'verifying {len(self.node_apis)} nodes every {self.settings.settle_delay}s')
        while True:
            print_msg(f'\nThe check will run after {self.settings.settle_delay}s')
            if self.killer.wait(self.settings.settle_delay):
                self.interrupted = True
                break
            report = self.run_pass()
            if self.is_finished(report):
                break
        logger.info(f'verification stopped after {self.pass_number} passes')
        return self.last_report
