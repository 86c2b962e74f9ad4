"""
Tests for cluster lifecycles, test specifications and the simulated cluster.
"""

import pytest
from unittest.mock import MagicMock

from jobchaos.errors import ClusterUnavailableError, ConfigurationError
from jobchaos.services.cluster.base import ClusterLifecycle, CombinedLifecycle
from jobchaos.services.cluster.components import (
    CLUSTER_COMPONENTS,
    ComponentRole,
    list_available_components,
    load_test_spec,
    parse_test_spec,
)
from jobchaos.services.cluster.simulated import (
    SimulatedCluster,
    SimulatedComponent,
    SimulatedJobClient,
    SimulatedNemesis,
)
from jobchaos.services.history.models import Operation, NEMESIS, JOB_RUNNING


class RecordingComponent(ClusterLifecycle):
    def __init__(self, name, events, failed_starts=0):
        self.name = name
        self.events = events
        self.failed_starts = failed_starts
        self.attempts = 0

    def start(self):
        self.attempts += 1
        if self.attempts <= self.failed_starts:
            raise ClusterUnavailableError(f"{self.name} not ready")
        self.events.append(("start", self.name))

    def teardown(self):
        self.events.append(("teardown", self.name))


class TestCombinedLifecycle:
    """Tests for CombinedLifecycle."""

    def setup_method(self):
        self.events = []

    def test_starts_in_order_and_tears_down_in_reverse(self):
        lifecycle = CombinedLifecycle(
            [RecordingComponent(n, self.events) for n in ("zookeeper", "hadoop", "flink")],
            retry_backoff=0
        )
        lifecycle.start()
        lifecycle.teardown()

        assert self.events == [
            ("start", "zookeeper"), ("start", "hadoop"), ("start", "flink"),
            ("teardown", "flink"), ("teardown", "hadoop"), ("teardown", "zookeeper"),
        ]

    def test_retries_component_start(self):
        flaky = RecordingComponent("hadoop", self.events, failed_starts=2)
        lifecycle = CombinedLifecycle([flaky], setup_retries=3, retry_backoff=0)

        lifecycle.start()
        assert flaky.attempts == 3
        assert self.events == [("start", "hadoop")]

    def test_gives_up_and_tears_down_started_components(self):
        zookeeper = RecordingComponent("zookeeper", self.events)
        broken = RecordingComponent("hadoop", self.events, failed_starts=10)
        flink = RecordingComponent("flink", self.events)
        lifecycle = CombinedLifecycle([zookeeper, broken, flink], setup_retries=2, retry_backoff=0)

        with pytest.raises(ClusterUnavailableError):
            lifecycle.start()
        assert broken.attempts == 2
        assert flink.attempts == 0
        assert self.events == [("start", "zookeeper"), ("teardown", "zookeeper")]

    def test_other_errors_are_not_retried(self):
        component = MagicMock(spec=ClusterLifecycle)
        component.name = "kafka"
        component.start.side_effect = RuntimeError("bad config")
        lifecycle = CombinedLifecycle([component], setup_retries=5, retry_backoff=0)

        with pytest.raises(RuntimeError):
            lifecycle.start()
        assert component.start.call_count == 1

    def test_teardown_continues_past_failures(self):
        failing = MagicMock(spec=ClusterLifecycle)
        failing.name = "hadoop"
        failing.teardown.side_effect = ClusterUnavailableError("stuck")
        zookeeper = RecordingComponent("zookeeper", self.events)
        lifecycle = CombinedLifecycle([zookeeper, failing], retry_backoff=0)
        lifecycle.start()

        with pytest.raises(ClusterUnavailableError) as exc_info:
            lifecycle.teardown()
        assert "hadoop" in str(exc_info.value)
        assert ("teardown", "zookeeper") in self.events


class TestTestSpec:
    """Tests for test specification parsing."""

    def test_load_valid_spec(self, test_spec_file):
        spec = load_test_spec(test_spec_file({"dbs": ["zookeeper", "hadoop", "flink-yarn-job"]}))
        assert spec.dbs == ["zookeeper", "hadoop", "flink-yarn-job"]
        assert [c.name for c in spec.components] == spec.dbs

    def test_unknown_component(self, test_spec_file):
        with pytest.raises(ConfigurationError) as exc_info:
            load_test_spec(test_spec_file({"dbs": ["zookeeper", "cassandra"]}))
        message = str(exc_info.value)
        assert "cassandra" in message
        assert "Must be one of:" in message

    @pytest.mark.parametrize("content", ["{not json", "[1, 2]", '{"dbs": []}', '{"nodes": ["n1"]}'])
    def test_invalid_specs(self, test_spec_file, content):
        with pytest.raises(ConfigurationError):
            load_test_spec(test_spec_file(content))

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_test_spec(str(tmp_path / "missing.json"))

    def test_parse(self):
        assert parse_test_spec({"dbs": ["kafka"]}).components[0].role == ComponentRole.BROKER

    def test_component_registry(self):
        listing = list_available_components()
        assert len(listing) == len(CLUSTER_COMPONENTS)
        job_components = {c["name"] for c in listing if c["role"] == ComponentRole.JOB.value}
        assert job_components == {
            "flink-yarn-job", "flink-yarn-session", "flink-standalone-session", "flink-mesos-session"
        }


class TestSimulatedCluster:
    """Tests for the simulated cluster."""

    def setup_method(self):
        self.t = 0.0
        self.cluster = SimulatedCluster(now=lambda: self.t, recovery_time=20, seed=1)

    def test_job_runs_once_submitted(self):
        assert self.cluster.job_running() is False
        self.cluster.submit_job()
        assert self.cluster.job_running() is True

    def test_job_recovers_after_fault(self):
        self.cluster.submit_job()
        self.t = 10
        self.cluster.kill_task_managers()
        self.t = 29
        assert self.cluster.job_running() is False
        self.t = 30
        assert self.cluster.job_running() is True

    def test_partition_makes_api_unreachable(self):
        self.cluster.submit_job()
        self.cluster.start_partition()
        with pytest.raises(ClusterUnavailableError):
            self.cluster.job_running()
        with pytest.raises(ClusterUnavailableError):
            self.cluster.cancel_job()
        self.cluster.stop_partition()
        self.t = 100
        assert self.cluster.job_running() is True

    def test_name_node_down_stops_job(self):
        self.cluster.submit_job()
        self.cluster.stop_name_node()
        self.t = 100
        assert self.cluster.job_running() is False
        self.cluster.start_name_node()
        self.t = 120
        assert self.cluster.job_running() is True

    def test_cancel(self):
        with pytest.raises(ClusterUnavailableError):
            self.cluster.cancel_job()
        self.cluster.submit_job()
        self.cluster.cancel_job()
        assert self.cluster.job_running() is False

    def test_job_component_submits_job(self):
        component = SimulatedComponent(CLUSTER_COMPONENTS["flink-standalone-session"], self.cluster)
        component.start()
        assert self.cluster.job_submitted
        component.teardown()
        assert not self.cluster.job_submitted
        assert self.cluster.running_components == set()

    def test_component_fails_configured_starts(self):
        component = SimulatedComponent(CLUSTER_COMPONENTS["zookeeper"], self.cluster, failed_starts=1)
        with pytest.raises(ClusterUnavailableError):
            component.start()
        component.start()
        assert "zookeeper" in self.cluster.running_components

    async def test_client_dispatches_operations(self):
        self.cluster.submit_job()
        client = SimulatedJobClient(self.cluster)
        assert await client.invoke(Operation(f=JOB_RUNNING)) is True
        with pytest.raises(ValueError):
            await client.invoke(Operation(f="read"))

    async def test_nemesis_applies_faults(self):
        self.cluster.submit_job()
        nemesis = SimulatedNemesis(self.cluster)
        result = await nemesis.invoke(Operation(f="kill-task-managers", process=NEMESIS, value={"count": 1}))
        assert result["killed"] == 1
        assert result["recovering_until"] == 20

    async def test_nemesis_rejects_unknown_fault(self):
        with pytest.raises(ValueError):
            await SimulatedNemesis(self.cluster).invoke(Operation(f="flood", process=NEMESIS))
