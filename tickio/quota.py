"Deciding when a long-running task should give the rest of the tick back to the host"
from __future__ import annotations
from tickio.host import Host
import logging

logger = logging.getLogger(__name__)

class QuotaMonitor:
    """Answers "should the caller yield now?" from the host's CPU accounting

    We compare the larger of the current and average usage with `percent` of the
    budget. Both figures are read fresh on each call, since they change every tick.
    This never suspends anything itself; see `Scheduler.quota` for that.

    """
    def __init__(self, host: Host) -> None:
        self.host = host

    def threshold(self, percent: float) -> float:
        return min(percent, 1.0) * self.host.cpu_budget()

    def should_yield(self, percent: float) -> bool:
        if percent <= 0:
            return True
        usage = max(self.host.cpu_usage(), self.host.average_cpu_usage())
        threshold = self.threshold(percent)
        if usage >= threshold:
            logger.debug("usage %s at or over %s of budget (%s)", usage, percent, threshold)
            return True
        return False
