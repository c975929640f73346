"""
Per-learner critical sections.

Submissions for the same learner are serialized in-process with one
asyncio.Lock per learner reference. Different learners never contend.
Locks live in a WeakValueDictionary and disappear once no coroutine holds or
waits on them.

This only covers a single worker process. Across processes the submission
engine also takes a row lock on the learner (SELECT ... FOR UPDATE) and
guards the progress write with a progress_version compare-and-set.
"""
import asyncio
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator


class LearnerLockRegistry:
    """Registry of asyncio locks keyed by learner reference."""

    def __init__(self) -> None:
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, learner_ref: str) -> asyncio.Lock:
        lock = self._locks.get(learner_ref)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[learner_ref] = lock
        return lock

    @asynccontextmanager
    async def hold(self, learner_ref: str) -> AsyncIterator[None]:
        """Hold the learner's lock for the duration of the block."""
        lock = self._lock_for(learner_ref)
        async with lock:
            yield

    def __len__(self) -> int:
        return len(self._locks)


learner_locks = LearnerLockRegistry()
