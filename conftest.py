# conftest.py
import os

import pytest

pytest_plugins = ["pytester"]


def pytest_addoption(parser):
    parser.addoption(
        "--run-optional",
        action="store_true",
        default=False,
        help="Run tests marked as optional (they need a live cluster)",
    )
    parser.addoption(
        "--scylla-nodes",
        default=os.environ.get("SCYLLA_NODES", ""),
        help="Comma separated cluster nodes for integration tests, defaults to $SCYLLA_NODES",
    )


def cluster_nodes(config):
    return [node.strip() for node in config.getoption("--scylla-nodes").split(",") if node.strip()]


def pytest_collection_modifyitems(config, items):
    run_optional = config.getoption("--run-optional")
    keyword = config.getoption("keyword")
    has_cluster = bool(cluster_nodes(config))

    for item in items:
        # naming an optional test with -k runs it without --run-optional
        selected = bool(keyword) and (keyword in item.name or keyword in item.nodeid)
        if "optional" in item.keywords and not (run_optional or selected):
            item.add_marker(pytest.mark.skip(reason="Optional test, use --run-optional to include"))
        elif "integration" in item.keywords and not has_cluster:
            item.add_marker(pytest.mark.skip(reason="No cluster, set --scylla-nodes or SCYLLA_NODES"))


@pytest.fixture
def scylla_nodes(request):
    return cluster_nodes(request.config)
