"""
Ordered strategy lists: try each step until one produces something.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Generic, List, Optional, Sequence, TypeVar

from utils.security import redact_secrets

logger = logging.getLogger(__name__)

S = TypeVar("S")
T = TypeVar("T")


@dataclass
class FallbackStep(Generic[S, T]):
    name: str
    run: Callable[[S], Awaitable[Optional[T]]]


@dataclass
class ChainResult(Generic[T]):
    value: Optional[T] = None
    step: Optional[str] = None
    failures: List[str] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.value is not None


def _is_empty(value) -> bool:
    if value is None:
        return True
    if isinstance(value, (list, tuple, dict, str)):
        return len(value) == 0
    return False


class FallbackChain(Generic[S, T]):
    """
    Steps run strictly in order; the next one only starts when the previous
    returned nothing. A raising step is logged and counts as nothing.
    """

    def __init__(
        self,
        name: str,
        steps: Sequence[FallbackStep[S, T]],
        is_empty: Callable[[Optional[T]], bool] = _is_empty,
    ) -> None:
        self.name = name
        self.steps = list(steps)
        self.is_empty = is_empty

    async def run(self, subject: S) -> ChainResult[T]:
        result: ChainResult[T] = ChainResult()
        for step in self.steps:
            try:
                value = await step.run(subject)
            except Exception as exc:
                message = redact_secrets(f"{step.name}: {exc}")
                logger.warning("[%s] step %s", self.name, message)
                result.failures.append(message)
                continue
            if self.is_empty(value):
                logger.debug("[%s] step %s yielded nothing", self.name, step.name)
                continue
            logger.info("[%s] resolved by %s", self.name, step.name)
            result.value = value
            result.step = step.name
            return result
        return result
