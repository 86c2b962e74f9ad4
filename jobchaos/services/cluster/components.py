"""
Cluster components and test specifications.

A test specification is a JSON file naming the components to provision for a
run, in start order, e.g. ``{"dbs": ["zookeeper", "hadoop", "flink-yarn-job"]}``.
"""

import enum
import json
from typing import Dict, List
from pydantic import BaseModel, Field, ValidationError, field_validator

from jobchaos.errors import ConfigurationError, allowed_values_help_text


class ComponentRole(str, enum.Enum):
    """What a component contributes to the cluster."""
    COORDINATION = "coordination"
    STORAGE = "storage"
    RESOURCE_MANAGER = "resource_manager"
    BROKER = "broker"
    JOB = "job"


class ComponentDefinition(BaseModel):
    """A cluster component that a test specification may name."""
    name: str
    display_name: str
    description: str
    role: ComponentRole

    @property
    def submits_job(self) -> bool:
        return self.role == ComponentRole.JOB


CLUSTER_COMPONENTS: Dict[str, ComponentDefinition] = {
    "flink-yarn-job": ComponentDefinition(
        name="flink-yarn-job",
        display_name="Flink job on YARN",
        description="Submits the job as a per-job YARN application",
        role=ComponentRole.JOB
    ),
    "flink-yarn-session": ComponentDefinition(
        name="flink-yarn-session",
        display_name="Flink YARN session",
        description="Starts a YARN session cluster and submits the job to it",
        role=ComponentRole.JOB
    ),
    "flink-standalone-session": ComponentDefinition(
        name="flink-standalone-session",
        display_name="Flink standalone session",
        description="Starts standalone job and task managers and submits the job",
        role=ComponentRole.JOB
    ),
    "flink-mesos-session": ComponentDefinition(
        name="flink-mesos-session",
        display_name="Flink Mesos session",
        description="Runs the Flink application master on Mesos and submits the job",
        role=ComponentRole.JOB
    ),
    "hadoop": ComponentDefinition(
        name="hadoop",
        display_name="Hadoop",
        description="HDFS name node and data nodes plus the YARN resource manager",
        role=ComponentRole.STORAGE
    ),
    "kafka": ComponentDefinition(
        name="kafka",
        display_name="Kafka",
        description="Message broker feeding the job",
        role=ComponentRole.BROKER
    ),
    "mesos": ComponentDefinition(
        name="mesos",
        display_name="Mesos",
        description="Mesos master and agents with Marathon",
        role=ComponentRole.RESOURCE_MANAGER
    ),
    "zookeeper": ComponentDefinition(
        name="zookeeper",
        display_name="ZooKeeper",
        description="Coordination service used for high availability",
        role=ComponentRole.COORDINATION
    ),
}


class TestSpec(BaseModel):
    """Which components to provision for a run."""
    __test__ = False

    dbs: List[str] = Field(min_length=1)

    @field_validator("dbs")
    @classmethod
    def validate_dbs(cls, dbs: List[str]) -> List[str]:
        unknown = [name for name in dbs if name not in CLUSTER_COMPONENTS]
        if unknown:
            raise ValueError(
                f"Invalid dbs specification {unknown}. "
                f"{allowed_values_help_text(CLUSTER_COMPONENTS.keys())}"
            )
        return dbs

    @property
    def components(self) -> List[ComponentDefinition]:
        return [CLUSTER_COMPONENTS[name] for name in self.dbs]


def parse_test_spec(data: dict) -> TestSpec:
    try:
        return TestSpec.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid test specification: {e}") from e


def load_test_spec(path: str) -> TestSpec:
    """Read and validate a test specification file."""
    try:
        with open(path) as fh:
            data = json.load(fh)
    except OSError as e:
        raise ConfigurationError(f"Cannot read test specification {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Malformed test specification {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Test specification {path} must be a JSON object")
    return parse_test_spec(data)


def list_available_components() -> List[Dict[str, str]]:
    """List all components a test specification may name."""
    return [
        {
            "name": component.name,
            "display_name": component.display_name,
            "description": component.description,
            "role": component.role.value,
        }
        for component in CLUSTER_COMPONENTS.values()
    ]
