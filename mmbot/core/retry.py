"""
RetryPolicy: bounded multi-pass retry shared by the order reconcilers.

A pass walks a batch of candidate orders once. Exchange APIs drop or rate-limit
some cancel requests, so in force mode the batch is walked again, skipping what
was already handled, until nothing is left or the pass budget is spent.

Usage:
    policy = RetryPolicy(max_tries=10, do_force=True)
    passes = await policy.run(run_pass, lambda: len(handled) < len(orders))
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable

MAX_TRIES = 10


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry over whole passes."""
    max_tries: int = MAX_TRIES
    do_force: bool = False

    def __post_init__(self) -> None:
        if self.max_tries < 1:
            raise ValueError("max_tries must be >= 1")

    def should_continue(self, tries: int, work_remains: bool) -> bool:
        """Whether another pass runs after `tries` completed passes."""
        return self.do_force and work_remains and tries < self.max_tries

    async def run(
        self,
        run_pass: Callable[[int], Awaitable[None]],
        work_remains: Callable[[], bool],
    ) -> int:
        """
        Run passes until done.

        Args:
            run_pass: Coroutine function receiving the 1-based pass number
            work_remains: Predicate evaluated after each pass

        Returns:
            Number of passes performed
        """
        tries = 0
        while True:
            tries += 1
            await run_pass(tries)
            if not self.should_continue(tries, work_remains()):
                return tries
