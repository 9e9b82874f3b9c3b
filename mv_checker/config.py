"""
Materialized View Checker Configuration Management

This module provides configuration classes for the view convergence checker:
cluster connection, write load shape and verification loop behaviour.

Classes:
    ScyllaSettings: cluster connection and schema names
    WritesSettings: load generator behaviour
    VerifierSettings: convergence verification loop behaviour
    Settings: Main configuration class that orchestrates all settings

Key Features:
    - YAML-based configuration loading
    - Environment variable overrides for connection options
    - Type validation and error handling
"""

import os
from dataclasses import dataclass, field

import yaml


CONSISTENCY_LEVELS = ["one", "two", "three", "quorum", "all", "local_quorum", "local_one"]


def stype(obj):
    """Get the simple type name of an object.

    Example:
        >>> stype([1, 2, 3])
        'list'
    """
    return type(obj).__name__


def default_nodes():
    # five local nodes, the layout the checker was written against
    return [f"127.0.0.{i}" for i in range(1, 6)]


def parse_node(node, default_port):
    """Split a node address into (host, port).

    Accepts "host", "host:port", a bare IPv6 literal and "[ipv6]:port".
    """
    port = None
    if node.startswith("["):
        host, closed, rest = node[1:].partition("]")
        if not closed or (rest and not rest.startswith(":")):
            raise ValueError(f"scylla node {node!r} is not a valid address")
        if rest:
            port = rest[1:]
    elif node.count(":") > 1:
        host = node
    else:
        host, colon, port = node.partition(":")
        if not colon:
            port = None

    if not host:
        raise ValueError(f"scylla node {node!r} has no host")
    if port is None:
        return host, default_port
    if not (port.isascii() and port.isdigit()) or not 1 <= int(port) <= 65535:
        raise ValueError(f"scylla node {node!r} has invalid port")
    return host, int(port)


@dataclass
class NodeEndpoint:
    index: int
    host: str
    port: int = 9042

    @property
    def address(self):
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"


@dataclass
class ScyllaSettings:
    """Cluster connection configuration.

    Attributes:
        nodes: cluster members in cluster order; each one gets a pinned
            single-node session during verification
        port: native protocol port shared by all nodes
        user / password: optional plain text credentials
        keyspace / table / view: schema names
        replication_factor: used only when the schema is recreated
        connect_timeout / request_timeout: driver timeouts in seconds
    """
    nodes: list = field(default_factory=default_nodes)
    port: int = 9042
    user: str = ""
    password: str = ""
    keyspace: str = "view_test"
    table: str = "tab"
    view: str = "tab_view"
    replication_factor: int = 3
    connect_timeout: int = 10
    request_timeout: int = 30

    def validate(self):
        if not isinstance(self.nodes, list) or not self.nodes:
            raise ValueError(f"scylla nodes should be non-empty list and not {stype(self.nodes)}")

        for node in self.nodes:
            if not isinstance(node, str) or not node:
                raise ValueError(f"scylla node should be non-empty string and not {stype(node)}")
            parse_node(node, self.port)

        if not isinstance(self.port, int):
            raise ValueError(f"scylla port should be int and not {stype(self.port)}")

        if not isinstance(self.user, str):
            raise ValueError(f"scylla user should be string and not {stype(self.user)}")

        if not isinstance(self.password, str):
            raise ValueError(f"scylla password should be string and not {stype(self.password)}")

        for name in ("keyspace", "table", "view"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value:
                raise ValueError(f"scylla {name} should be non-empty string and not {stype(value)}")

        if not isinstance(self.replication_factor, int) or self.replication_factor < 1:
            raise ValueError(
                f"scylla replication_factor should be positive integer and not {stype(self.replication_factor)}"
            )

        if not isinstance(self.connect_timeout, int) or self.connect_timeout <= 0:
            raise ValueError("scylla connect_timeout should be at least 1 second")

        if not isinstance(self.request_timeout, int) or self.request_timeout <= 0:
            raise ValueError("scylla request_timeout should be at least 1 second")

    def get_endpoints(self):
        endpoints = []
        for index, node in enumerate(self.nodes):
            host, port = parse_node(node, self.port)
            endpoints.append(NodeEndpoint(index=index, host=host, port=port))
        return endpoints


@dataclass
class WritesSettings:
    concurrency: int = 512
    write_interval: float = 0.0
    report_every: int = 10000
    report_interval: float = 4.0
    insert_retries: int = 8
    retry_delay: float = 0.064
    consistency: str = "quorum"
    start_key: int = 0

    def validate(self):
        if not isinstance(self.concurrency, int) or self.concurrency < 1:
            raise ValueError(
                f"writes concurrency should be positive integer and not {stype(self.concurrency)}"
            )

        if not isinstance(self.write_interval, (int, float)) or self.write_interval < 0:
            raise ValueError("writes write_interval should be non-negative number")

        if not isinstance(self.report_every, int) or self.report_every < 1:
            raise ValueError("writes report_every should be positive integer")

        if not isinstance(self.report_interval, (int, float)) or self.report_interval < 0:
            raise ValueError("writes report_interval should be non-negative number")

        if not isinstance(self.insert_retries, int) or self.insert_retries < 1:
            raise ValueError("writes insert_retries should be at least 1")

        if not isinstance(self.retry_delay, (int, float)) or self.retry_delay < 0:
            raise ValueError("writes retry_delay should be non-negative number")

        if self.consistency not in CONSISTENCY_LEVELS:
            raise ValueError(f"wrong writes consistency {self.consistency}")

        if not isinstance(self.start_key, int) or self.start_key < 0:
            raise ValueError("writes start_key should be non-negative integer")


@dataclass
class VerifierSettings:
    settle_delay: float = 60.0
    parallel_reads: int = 5
    max_diff_rows: int = 10
    # 0 means verify until interrupted
    max_passes: int = 0
    exit_on_match: bool = False

    def validate(self):
        if not isinstance(self.settle_delay, (int, float)) or self.settle_delay < 0:
            raise ValueError("verifier settle_delay should be non-negative number")

        if not isinstance(self.parallel_reads, int) or self.parallel_reads < 1:
            raise ValueError("verifier parallel_reads should be positive integer")

        if not isinstance(self.max_diff_rows, int) or self.max_diff_rows < 0:
            raise ValueError("verifier max_diff_rows should be non-negative integer")

        if not isinstance(self.max_passes, int) or self.max_passes < 0:
            raise ValueError("verifier max_passes should be non-negative integer")

        if not isinstance(self.exit_on_match, bool):
            raise ValueError(f"verifier exit_on_match should be bool and not {stype(self.exit_on_match)}")


class Settings:
    DEFAULT_LOG_LEVEL = "info"

    ENV_OVERRIDES = {
        "SCYLLA_PORT": ("port", int),
        "SCYLLA_USER": ("user", str),
        "SCYLLA_PASSWORD": ("password", str),
        "SCYLLA_KEYSPACE": ("keyspace", str),
    }

    def __init__(self):
        self.scylla = ScyllaSettings()
        self.writes = WritesSettings()
        self.verifier = VerifierSettings()
        self.settings_file = ""
        self.log_level = Settings.DEFAULT_LOG_LEVEL
        self.recreate_schema = False
        self.http_host = ""
        self.http_port = 0

    def load(self, settings_file):
        with open(settings_file, "r") as f:
            data = yaml.safe_load(f.read()) or {}

        self.settings_file = settings_file
        self.scylla = ScyllaSettings(**data.pop("scylla", {}))
        self.writes = WritesSettings(**data.pop("writes", {}))
        self.verifier = VerifierSettings(**data.pop("verifier", {}))
        self.log_level = data.pop("log_level", Settings.DEFAULT_LOG_LEVEL)
        self.recreate_schema = data.pop("recreate_schema", False)
        self.http_host = data.pop("http_host", "")
        self.http_port = data.pop("http_port", 0)

        if data:
            raise Exception(f"Unsupported config options: {list(data.keys())}")

        self.apply_env_overrides()
        self.validate()

    def apply_env_overrides(self, environ=None):
        environ = os.environ if environ is None else environ

        nodes = environ.get("SCYLLA_NODES")
        if nodes:
            self.scylla.nodes = [n.strip() for n in nodes.split(",") if n.strip()]

        for env_name, (attr, cast) in self.ENV_OVERRIDES.items():
            value = environ.get(env_name)
            if value is None:
                continue
            try:
                setattr(self.scylla, attr, cast(value))
            except ValueError:
                raise ValueError(f"wrong value for {env_name}: {value!r}")

        log_level = environ.get("MV_CHECKER_LOG_LEVEL")
        if log_level:
            self.log_level = log_level.lower()

    def validate_log_level(self):
        if self.log_level not in ["critical", "error", "warning", "info", "debug"]:
            raise ValueError(f"wrong log level {self.log_level}")

    def validate(self):
        self.scylla.validate()
        self.writes.validate()
        self.verifier.validate()
        self.validate_log_level()
        if not isinstance(self.recreate_schema, bool):
            raise ValueError(f"recreate_schema should be bool and not {stype(self.recreate_schema)}")
        if not isinstance(self.http_host, str):
            raise ValueError(f"http_host should be string and not {stype(self.http_host)}")
        if not isinstance(self.http_port, int):
            raise ValueError(f"http_port should be int and not {stype(self.http_port)}")
