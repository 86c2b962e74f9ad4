"""
Operation generators.

A generator is an explicit stream of steps. Each call to ``next()`` returns an
``Operation`` template to invoke, a ``Sleep`` to wait, or ``None`` once the
stream is exhausted. Generators are restartable (``restart()`` returns a fresh
copy in its initial state) and can be closed early (``close()``).

Combinators:
- Cycle: repeat a fixed list of steps forever
- Seq: emit a fixed list of steps once
- Once: emit a single operation
- Concat: exhaust generators one after another
- TimeLimit: cut a generator off after a duration
- Stoppable: end a generator once a stop signal is set
"""

from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Sequence, Union
from pydantic import BaseModel, Field

from jobchaos.services.history.models import Operation


class Sleep(BaseModel):
    """Wait for a number of time units before the next step."""
    seconds: float = Field(ge=0)


Step = Union[Operation, Sleep]


class GeneratorContext:
    """What a generator may observe while producing its next step."""

    def __init__(self, now: Callable[[], float]):
        self.now = now


class Generator(ABC):
    """Base class for all operation streams."""

    def __init__(self):
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def next(self, ctx: GeneratorContext) -> Optional[Step]:
        """Return the next step, or None once exhausted or closed."""
        if self._closed:
            return None
        step = self._next(ctx)
        if step is None:
            self.close()
        return step

    def close(self) -> None:
        self._closed = True

    @abstractmethod
    def _next(self, ctx: GeneratorContext) -> Optional[Step]:
        pass

    @abstractmethod
    def restart(self) -> "Generator":
        """Fresh copy of this generator in its initial state."""
        pass


class Seq(Generator):
    """Emits a fixed list of steps once."""

    def __init__(self, steps: Sequence[Step]):
        super().__init__()
        self.steps: List[Step] = list(steps)
        self._position = 0

    def _next(self, ctx: GeneratorContext) -> Optional[Step]:
        if self._position >= len(self.steps):
            return None
        step = self.steps[self._position]
        self._position += 1
        return step

    def restart(self) -> "Seq":
        return Seq(self.steps)


class Cycle(Generator):
    """Repeats a fixed list of steps forever."""

    def __init__(self, steps: Sequence[Step]):
        super().__init__()
        if not steps:
            raise ValueError("Cycle needs at least one step")
        self.steps: List[Step] = list(steps)
        self._position = 0

    def _next(self, ctx: GeneratorContext) -> Optional[Step]:
        step = self.steps[self._position % len(self.steps)]
        self._position += 1
        return step

    def restart(self) -> "Cycle":
        return Cycle(self.steps)


class Once(Seq):
    """Emits a single operation."""

    def __init__(self, op: Operation):
        super().__init__([op])

    def restart(self) -> "Once":
        return Once(self.steps[0])


class Concat(Generator):
    """Exhausts each generator in turn."""

    def __init__(self, *generators: Generator):
        super().__init__()
        self.generators: List[Generator] = list(generators)
        self._position = 0

    def _next(self, ctx: GeneratorContext) -> Optional[Step]:
        while self._position < len(self.generators):
            step = self.generators[self._position].next(ctx)
            if step is not None:
                return step
            self._position += 1
        return None

    def close(self) -> None:
        for generator in self.generators[self._position:]:
            generator.close()
        super().close()

    def restart(self) -> "Concat":
        return Concat(*(g.restart() for g in self.generators))


class TimeLimit(Generator):
    """
    Emits the inner generator's steps until ``limit`` time units have passed.

    The clock starts on the first call to ``next()``. Sleeps are truncated so
    the generator never waits past its deadline.
    """

    def __init__(self, limit: float, generator: Generator):
        super().__init__()
        if limit < 0:
            raise ValueError("Time limit must not be negative")
        self.limit = limit
        self.generator = generator
        self._deadline: Optional[float] = None

    def _next(self, ctx: GeneratorContext) -> Optional[Step]:
        now = ctx.now()
        if self._deadline is None:
            self._deadline = now + self.limit
        remaining = self._deadline - now
        if remaining <= 0:
            self.generator.close()
            return None
        step = self.generator.next(ctx)
        if isinstance(step, Sleep) and step.seconds > remaining:
            return Sleep(seconds=remaining)
        return step

    def restart(self) -> "TimeLimit":
        return TimeLimit(self.limit, self.generator.restart())


class Stoppable(Generator):
    """Ends the inner generator once ``stop`` is set."""

    def __init__(self, stop, generator: Generator):
        super().__init__()
        self.stop = stop
        self.generator = generator

    def _next(self, ctx: GeneratorContext) -> Optional[Step]:
        if self.stop.is_set:
            self.generator.close()
            return None
        return self.generator.next(ctx)

    def restart(self) -> "Stoppable":
        return Stoppable(self.stop, self.generator.restart())
