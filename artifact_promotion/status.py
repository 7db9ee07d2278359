"""Shared promotion status.

A single SharedPromotionStatus instance lives for the whole process and
records the in-flight or most recently finished promotion attempt. The
operator interface polls it; the orchestrator is its only writer.

The lock is the mutual-exclusion boundary: exactly one promotion runs at
a time per status instance, and a second attempt waits on the lock.
"""

import asyncio
from typing import List, Optional

from pydantic import BaseModel, Field


class PromotionStatusSnapshot(BaseModel):
    """Point-in-time copy of the shared status for polling clients."""

    build_key: Optional[str] = None
    build_number: Optional[int] = None
    done: bool = True
    log: List[str] = Field(default_factory=list)


class SharedPromotionStatus:
    """Process-wide record of the current or last promotion attempt.

    Attributes:
        lock: Held by the orchestrator for the duration of an attempt.
        build_key: Plan result key of the build being promoted.
        build_number: Build number being promoted.
        done: False only while an attempt is running.
        log: Ordered operator-facing log lines of the attempt.
    """

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.build_key: Optional[str] = None
        self.build_number: Optional[int] = None
        self.done = True
        self.log: List[str] = []

    def reset(self, build_key: str, build_number: int) -> None:
        """Prepare the status for a new attempt."""
        self.build_key = build_key
        self.build_number = build_number
        self.done = False
        self.log.clear()

    def append(self, line: str) -> None:
        self.log.append(line)

    def finish(self) -> None:
        self.done = True

    def snapshot(self) -> PromotionStatusSnapshot:
        return PromotionStatusSnapshot(
            build_key=self.build_key,
            build_number=self.build_number,
            done=self.done,
            log=list(self.log),
        )
