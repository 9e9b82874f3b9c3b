"""Unit tests for the --run-optional / --scylla-nodes switches of the root conftest"""

from pathlib import Path

import pytest


ROOT_CONFTEST = Path(__file__).resolve().parents[2] / "conftest.py"

LIVE_TEST = """
import pytest

@pytest.mark.optional
@pytest.mark.integration
def test_live(scylla_nodes):
    assert scylla_nodes == ["10.0.0.1", "10.0.0.2"]
"""


@pytest.fixture
def live_suite(pytester, monkeypatch):
    monkeypatch.delenv("SCYLLA_NODES", raising=False)
    pytester.makeconftest(ROOT_CONFTEST.read_text())
    pytester.makepyfile(test_live=LIVE_TEST)
    return pytester


@pytest.mark.unit
def test_optional_skipped_by_default(live_suite):
    result = live_suite.runpytest("--scylla-nodes=10.0.0.1,10.0.0.2")
    result.assert_outcomes(skipped=1)


@pytest.mark.unit
def test_integration_skipped_without_cluster(live_suite):
    result = live_suite.runpytest("--run-optional")
    result.assert_outcomes(skipped=1)


@pytest.mark.unit
@pytest.mark.parametrize("selector", [["--run-optional"], ["-k", "test_live"]])
def test_live_test_gets_cluster_nodes(live_suite, selector):
    result = live_suite.runpytest(*selector, "--scylla-nodes= 10.0.0.1, 10.0.0.2 ,")
    result.assert_outcomes(passed=1)


@pytest.mark.unit
def test_cluster_nodes_from_env(live_suite, monkeypatch):
    monkeypatch.setenv("SCYLLA_NODES", "10.0.0.1,10.0.0.2")
    result = live_suite.runpytest("--run-optional")
    result.assert_outcomes(passed=1)
