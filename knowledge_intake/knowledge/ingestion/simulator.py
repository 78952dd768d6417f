"""Local stand-in for the ingestion service used before an agent exists."""

from __future__ import annotations

import asyncio
import logging
import math
import random
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Optional

from knowledge_intake.core.config import settings
from knowledge_intake.knowledge.ingestion.events import IngestionEvent, ProgressTick, UploadResult
from knowledge_intake.models import Source

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimulatorConfig:
    interval: float = 0.5
    min_increment: int = 5
    max_increment: int = 15
    completion_delay: float = 0.5

    def __post_init__(self) -> None:
        if self.interval < 0 or self.completion_delay < 0:
            raise ValueError("Simulator delays must be non-negative")
        if not 1 <= self.min_increment <= self.max_increment <= 100:
            raise ValueError("Simulator increments must satisfy 1 <= min <= max <= 100")

    @property
    def max_ticks(self) -> int:
        return math.ceil(100 / self.min_increment)

    @classmethod
    def from_settings(cls) -> "SimulatorConfig":
        return cls(
            interval=settings.SIMULATOR_INTERVAL_SECONDS,
            min_increment=settings.SIMULATOR_MIN_INCREMENT,
            max_increment=settings.SIMULATOR_MAX_INCREMENT,
            completion_delay=settings.SIMULATOR_COMPLETION_DELAY_SECONDS,
        )


class FallbackSimulator:
    """Advance a source's progress on a timer until it completes.

    Each tick sleeps ``interval`` then adds a random increment drawn from
    ``[min_increment, max_increment]``, clamped at 100. Completion always
    succeeds with an empty response, after ``completion_delay``.
    """

    def __init__(
        self,
        config: Optional[SimulatorConfig] = None,
        *,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.config = config or SimulatorConfig.from_settings()
        self.rng = rng or random.Random()
        self._sleep = sleep

    async def run(self, source: Source) -> AsyncIterator[IngestionEvent]:
        config = self.config
        progress = 0
        ticks = 0
        while progress < 100:
            await self._sleep(config.interval)
            progress = min(100, progress + self.rng.randint(config.min_increment, config.max_increment))
            ticks += 1
            yield ProgressTick(progress)

        logger.debug("Simulated upload of %s reached 100%% after %s ticks", source.id, ticks)
        await self._sleep(config.completion_delay)
        yield UploadResult.success({})
