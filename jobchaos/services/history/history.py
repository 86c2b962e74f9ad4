"""Append-only run history shared by the client and fault streams."""
import asyncio
from typing import Callable, Iterator, List, Optional

from jobchaos.services.history.models import Operation, OperationType


class History:
    """
    Append-only log of operation records for one run.

    Each stream appends its own records. All appends happen on the run's event
    loop, so no lock is needed; the merged view orders records by time and
    then by append order.
    """

    def __init__(self):
        self._operations: List[Operation] = []
        self.appended = asyncio.Event()

    def __len__(self) -> int:
        return len(self._operations)

    def __iter__(self) -> Iterator[Operation]:
        return iter(self.merged())

    def append(self, op: Operation) -> Operation:
        """Record ``op`` and return the stored copy with its index set."""
        stored = op.model_copy(update={"index": len(self._operations)})
        self._operations.append(stored)
        self.appended.set()
        return stored

    def merged(self) -> List[Operation]:
        """All records ordered by (time, index)."""
        return sorted(self._operations, key=lambda op: (op.time, op.index))

    def completions(self, predicate: Optional[Callable[[Operation], bool]] = None) -> List[Operation]:
        ops = [op for op in self.merged() if op.is_completion]
        if predicate is not None:
            ops = [op for op in ops if predicate(op)]
        return ops

    def last_fault_end(self) -> Optional[float]:
        """Completion time of the most recent fault that may have taken effect."""
        faults = self.completions(
            lambda op: op.is_fault and op.type != OperationType.FAIL
        )
        return faults[-1].time if faults else None

    def since(self, index: int) -> List[Operation]:
        """Records appended at or after position ``index``, in append order."""
        return self._operations[index:]

    def pending_invocations(self) -> List[Operation]:
        """Invocations with no completion yet, per process."""
        open_by_process = {}
        for op in sorted(self._operations, key=lambda o: o.index):
            if op.is_invoke:
                open_by_process[op.process] = op
            else:
                open_by_process.pop(op.process, None)
        return list(open_by_process.values())
