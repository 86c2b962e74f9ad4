"""
Cluster collaborators.

This module provides:
- Lifecycle, client and nemesis interfaces
- The registry of cluster components and test-specification loading
- A simulated cluster for demo mode (``jobchaos.services.cluster.simulated``)
"""

from jobchaos.services.cluster.base import (
    ClusterLifecycle,
    CombinedLifecycle,
    JobClient,
    Nemesis,
)
from jobchaos.services.cluster.components import (
    CLUSTER_COMPONENTS,
    ComponentDefinition,
    TestSpec,
    load_test_spec,
)

__all__ = [
    "ClusterLifecycle",
    "CombinedLifecycle",
    "JobClient",
    "Nemesis",
    "CLUSTER_COMPONENTS",
    "ComponentDefinition",
    "TestSpec",
    "load_test_spec",
]
