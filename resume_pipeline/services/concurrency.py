import asyncio
from typing import Awaitable, Callable, List, Sequence, TypeVar

from resume_pipeline.utils.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class GroupedTaskRunner:
    """Run work in fixed-size groups.

    Groups run one after another with a short pause between them; tasks in a
    group run together. At most ``group_size`` tasks are in flight at once.
    Results come back in input order. Each task must record its own failure;
    an exception escaping a task propagates.
    """

    def __init__(self, group_size: int = 3, group_delay: float = 0.1):
        if group_size < 1:
            raise ValueError("group_size must be at least 1")
        self.group_size = group_size
        self.group_delay = group_delay

    def groups(self, items: Sequence[T]) -> List[Sequence[T]]:
        return [items[i:i + self.group_size] for i in range(0, len(items), self.group_size)]

    async def run(self, items: Sequence[T], worker: Callable[[T], Awaitable[R]]) -> List[R]:
        results: List[R] = []
        batches = self.groups(items)
        for index, group in enumerate(batches):
            logger.debug(f"Processing group {index + 1}/{len(batches)} ({len(group)} items)")
            results.extend(await asyncio.gather(*[worker(item) for item in group]))
            if index < len(batches) - 1 and self.group_delay > 0:
                await asyncio.sleep(self.group_delay)
        return results
