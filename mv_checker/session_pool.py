"""Driver session manager for mv-checker"""

import threading
from logging import getLogger

from cassandra import ConsistencyLevel
from cassandra.auth import PlainTextAuthProvider
from cassandra.cluster import EXEC_PROFILE_DEFAULT, Cluster, ExecutionProfile, NoHostAvailable
from cassandra.policies import WhiteListRoundRobinPolicy

from .config import NodeEndpoint, ScyllaSettings

logger = getLogger(__name__)


def consistency_level(name: str) -> int:
    """Map a config consistency name ("quorum", "one", ...) to the driver value."""
    try:
        return ConsistencyLevel.name_to_value[name.upper()]
    except KeyError:
        raise ValueError(f"unknown consistency level {name}")


class SessionPoolManager:
    """Singleton cache of driver sessions.

    Sessions are keyed by (contact point, pinned, consistency) so the load
    generator and the verifier share the cluster-wide session.
    """

    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if not self._initialized:
            self._sessions = {}
            self._initialized = True

    def _build_cluster(self, settings: ScyllaSettings, endpoint: NodeEndpoint, profile: ExecutionProfile):
        auth_provider = None
        if settings.user:
            auth_provider = PlainTextAuthProvider(username=settings.user, password=settings.password)
        return Cluster(
            contact_points=[endpoint.host],
            port=endpoint.port,
            auth_provider=auth_provider,
            connect_timeout=settings.connect_timeout,
            execution_profiles={EXEC_PROFILE_DEFAULT: profile},
        )

    def get_or_create_session(
        self,
        settings: ScyllaSettings,
        endpoint: NodeEndpoint,
        consistency: str = "quorum",
        pinned: bool = False,
    ):
        """
        Get or create a session reaching the cluster through `endpoint`.

        Args:
            settings: cluster connection configuration
            endpoint: contact point
            consistency: default consistency level for statements
            pinned: when set, the session only ever talks to `endpoint`

        Returns:
            cassandra.cluster.Session
        """
        session_key = f"{endpoint.address}:{'pinned' if pinned else 'cluster'}:{consistency}"

        if session_key not in self._sessions:
            with self._lock:
                if session_key not in self._sessions:
                    profile_options = {
                        "consistency_level": consistency_level(consistency),
                        "request_timeout": settings.request_timeout,
                    }
                    if pinned:
                        profile_options["load_balancing_policy"] = WhiteListRoundRobinPolicy([endpoint.host])
                    profile = ExecutionProfile(**profile_options)

                    cluster = self._build_cluster(settings, endpoint, profile)
                    try:
                        self._sessions[session_key] = cluster.connect()
                    except NoHostAvailable as e:
                        logger.error(f"Failed to connect session '{session_key}': {e}")
                        cluster.shutdown()
                        raise

                    logger.info(f"Created session '{session_key}'")

        return self._sessions[session_key]

    def close_all_sessions(self):
        with self._lock:
            for session_key, session in self._sessions.items():
                try:
                    session.cluster.shutdown()
                    logger.info(f"Session '{session_key}' closed")
                except Exception as e:
                    logger.warning(f"Error closing session '{session_key}': {e}")
            self._sessions.clear()


def get_session_manager() -> SessionPoolManager:
    """Get the singleton session manager"""
    return SessionPoolManager()
