"""Operation generators and their combinators."""

from jobchaos.services.generators.base import (
    Generator,
    GeneratorContext,
    Sleep,
    Seq,
    Cycle,
    Once,
    Concat,
    TimeLimit,
    Stoppable,
)
from jobchaos.services.generators.client import (
    HealthPoller,
    CancellingSequence,
    CLIENT_GENERATORS,
    get_client_generator,
)

__all__ = [
    "Generator",
    "GeneratorContext",
    "Sleep",
    "Seq",
    "Cycle",
    "Once",
    "Concat",
    "TimeLimit",
    "Stoppable",
    "HealthPoller",
    "CancellingSequence",
    "CLIENT_GENERATORS",
    "get_client_generator",
]
