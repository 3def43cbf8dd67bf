"""HeatMapRefresher — periodic heat-map recomputation with last-writer-wins publishing.

Every pass fetches fresh snapshots from the price feed and rebuilds the
whole heat map from scratch.  Passes are numbered; a finished pass is
published only if no newer pass has been published already, so a slow
pass that completes late never overwrites fresher results.
"""

import asyncio
import itertools
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from fxlevels.broker.feeds import PriceFeed
from fxlevels.heatmap import build_heatmap_concurrent
from fxlevels.strategy.instruments import Instrument
from fxlevels.strategy.models import (
    DEFAULT_THRESHOLDS,
    InstrumentAnalysis,
    SignalThresholds,
)

logger = logging.getLogger("fxlevels.refresher")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class HeatMapPass:
    """The result of one completed refresh pass."""

    pass_id: int
    records: tuple[InstrumentAnalysis, ...]
    computed_at: datetime


class HeatMapRefresher:
    """Drives periodic refresh of the heat map.

    Args:
        feed: Price provider satisfying ``PriceFeed``.
        instruments: Universe to analyse, in display order.
        thresholds: Signal thresholds passed to the engine.
        channel_window: Close-series window for the channel.
        interval_seconds: Delay between pass starts.
        clock: Time source used to stamp published passes.
    """

    def __init__(
        self,
        feed: PriceFeed,
        instruments: Sequence[Instrument],
        thresholds: SignalThresholds = DEFAULT_THRESHOLDS,
        channel_window: int = 20,
        interval_seconds: float = 5.0,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._feed = feed
        self._instruments = list(instruments)
        self._thresholds = thresholds
        self._channel_window = channel_window
        self._interval = interval_seconds
        self._clock = clock
        self._pass_ids = itertools.count(1)
        self._latest: Optional[HeatMapPass] = None
        self._running = False
        self._pass_count = 0

    # ── Public API ───────────────────────────────────────────────────────

    @property
    def latest(self) -> Optional[HeatMapPass]:
        """The most recently published pass, or ``None`` before the first."""
        return self._latest

    @property
    def running(self) -> bool:
        return self._running

    @property
    def pass_count(self) -> int:
        """Number of passes started so far."""
        return self._pass_count

    def next_pass_id(self) -> int:
        self._pass_count += 1
        return next(self._pass_ids)

    def publish(self, pass_id: int, records: Sequence[InstrumentAnalysis]) -> bool:
        """Publish a finished pass unless a newer one is already published.

        Returns ``True`` if the pass was published, ``False`` if discarded.
        """
        if self._latest is not None and pass_id <= self._latest.pass_id:
            logger.debug(
                "Discarding stale pass %d (published: %d)",
                pass_id, self._latest.pass_id,
            )
            return False
        self._latest = HeatMapPass(
            pass_id=pass_id, records=tuple(records), computed_at=self._clock(),
        )
        return True

    async def run_pass(self) -> Optional[HeatMapPass]:
        """Fetch, compute and publish one pass.

        Returns the published pass, or ``None`` if it was discarded or the
        feed failed.
        """
        pass_id = self.next_pass_id()
        try:
            snapshots = await self._feed.fetch_snapshots(self._instruments)
            records = await build_heatmap_concurrent(
                snapshots, self._thresholds, channel_window=self._channel_window,
            )
        except Exception as exc:
            logger.error("Refresh pass %d failed: %s", pass_id, exc)
            return None

        if not self.publish(pass_id, records):
            return None
        signals = sum(1 for r in records if r.signal.is_directional)
        logger.info(
            "Pass %d: %d instruments, %d directional signals",
            pass_id, len(records), signals,
        )
        return self._latest

    async def run(self, max_passes: int = 0) -> None:
        """Start a pass every ``interval_seconds`` until stopped.

        Passes run as independent tasks, so a slow pass does not delay the
        next one.  Stops after *max_passes* passes when non-zero.
        """
        self._running = True
        tasks: set[asyncio.Task] = set()
        started = 0

        while self._running:
            task = asyncio.create_task(self.run_pass())
            tasks.add(task)
            task.add_done_callback(tasks.discard)
            started += 1
            if max_passes and started >= max_passes:
                break
            await asyncio.sleep(self._interval)

        if tasks:
            await asyncio.gather(*tasks)
        self._running = False

    def stop(self) -> None:
        """Signal the loop to stop after the current sleep."""
        self._running = False
        logger.info("Stop signal sent to heat-map refresher.")
