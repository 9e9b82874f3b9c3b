import threading
from functools import partial
from logging import getLogger

from cassandra.cluster import NoHostAvailable
from fastapi import APIRouter, FastAPI
from uvicorn import Config, Server

from .config import Settings
from .load_generator import LoadGenerator
from .rows import RowKeyGenerator
from .scylla_api import ScyllaApi
from .session_pool import get_session_manager
from .stop_controller import StopController
from .utils import GracefulKiller, print_msg
from .verifier import ConvergenceVerifier


logger = getLogger(__name__)


app = FastAPI()


class Phase:
    CONNECTING = 'connecting'
    WRITING = 'writing'
    VERIFYING = 'verifying'
    STOPPED = 'stopped'


class Runner:

    def __init__(self, config: Settings, input_stream=None, killer: GracefulKiller | None = None):
        self.config = config
        self.input_stream = input_stream
        self.killer = killer
        self.phase = Phase.CONNECTING
        self.base_api = None
        self.node_apis = []
        self.load_generator = None
        self.verifier = None
        self.http_server = None
        self.router = None

    def run_server(self):
        if not self.config.http_host or not self.config.http_port:
            logger.info('http server disabled')
            return
        logger.info('starting http server')

        config = Config(app=app, host=self.config.http_host, port=self.config.http_port)
        self.router = APIRouter()
        self.router.add_api_route("/status", self.get_status, methods=["GET"])
        app.include_router(self.router)

        self.http_server = Server(config)
        self.http_server.run()

    def get_status(self):
        status = {'phase': self.phase, 'writes': None, 'last_pass': None}
        if self.load_generator is not None:
            stats = self.load_generator.stats()
            status['writes'] = {
                'issued': stats.issued,
                'written': stats.written,
                'failed': stats.failed,
            }
        if self.verifier is not None and self.verifier.last_report is not None:
            status['last_pass'] = self.verifier.last_report.to_dict()
        return status

    def connect(self):
        print_msg('Connecting...')
        scylla = self.config.scylla
        endpoints = scylla.get_endpoints()
        manager = get_session_manager()

        # cluster-wide session for writes and base reads, QUORUM by default
        session = manager.get_or_create_session(scylla, endpoints[0], consistency='quorum')
        self.base_api = ScyllaApi(session, scylla, name='cluster')

        # one session per node that never leaves it, ONE by default
        self.node_apis = []
        for endpoint in endpoints:
            session_factory = partial(
                manager.get_or_create_session, scylla, endpoint, consistency='one', pinned=True,
            )
            try:
                node_session = session_factory()
            except NoHostAvailable as e:
                # retried on every read, passes report an error for this node
                # until the session can be created
                logger.warning(f'node #{endpoint.index} ({endpoint.address}) is not reachable yet: {e}')
                node_session = None
            node_api = ScyllaApi(
                node_session, scylla, name=f'node #{endpoint.index}', session_factory=session_factory,
            )
            self.node_apis.append((endpoint, node_api))

    def setup_schema(self):
        self.base_api.setup_schema()

    def run_writes(self):
        self.phase = Phase.WRITING
        self.load_generator = LoadGenerator(
            scylla_api=self.base_api,
            key_generator=RowKeyGenerator(start=self.config.writes.start_key),
            settings=self.config.writes,
        )
        self.load_generator.start()
        return StopController(self.load_generator, input_stream=self.input_stream).wait_for_operator()

    def run_verification(self):
        self.phase = Phase.VERIFYING
        self.verifier = ConvergenceVerifier(
            base_api=self.base_api,
            node_apis=self.node_apis,
            settings=self.config.verifier,
            killer=self.killer if self.killer is not None else GracefulKiller(),
        )
        return self.verifier.run()

    @property
    def interrupted(self) -> bool:
        return self.verifier is not None and self.verifier.interrupted

    def run(self, with_writes=True):
        server_thread = threading.Thread(target=self.run_server, daemon=True)
        server_thread.start()

        try:
            self.connect()
            if self.config.recreate_schema:
                self.setup_schema()
            if with_writes:
                self.run_writes()
            return self.run_verification()
        finally:
            self.close()

    def close(self):
        self.phase = Phase.STOPPED
        if self.load_generator is not None and self.load_generator.running:
            self.load_generator.stop()
            self.load_generator.wait_stopped()
        if self.http_server:
            self.http_server.should_exit = True
        get_session_manager().close_all_sessions()
        logger.info('stopped')
