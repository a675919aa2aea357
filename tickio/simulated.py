"""A deterministic host, for tests and for running tasks offline

Nothing happens on its own here. Time passes when you call `advance`, channels
tick when you call `tick`, and CPU usage is whatever you set it to. The HTTP
service issues nothing; it records each request and waits for you to complete it,
unless you've set an `auto` responder.

"""
from __future__ import annotations
from dataclasses import dataclass, field
from tickio.config import SchedulerConfig
from tickio.exceptions import SimulationStalled
from tickio.host import (
    Callback, ChannelRegistry, EventHub, FailureCallback, Host, HttpService, SuccessCallback,
)
import heapq
import itertools
import logging
import typing as t

__all__ = [
    'SimulatedRequest',
    'SimulatedHttpService',
    'SimulatedHost',
]

logger = logging.getLogger(__name__)

@dataclass
class SimulatedRequest:
    method: str
    url: str
    parameters: t.Optional[t.Mapping[str, str]]
    headers: t.Optional[t.Mapping[str, str]]
    on_success: SuccessCallback
    on_failure: FailureCallback
    completed: bool = False

    def succeed(self, body: str, headers: t.Optional[t.Mapping[str, str]]=None, code: int=200) -> None:
        self._complete()
        self.on_success(body, len(body), dict(headers or {}), code)

    def fail(self, reason: str) -> None:
        self._complete()
        self.on_failure(reason)

    def _complete(self) -> None:
        if self.completed:
            raise RuntimeError("request already completed", self)
        self.completed = True

class SimulatedHttpService(HttpService):
    """Records requests instead of making them

    `readiness` decides `can_issue`; it's called once per check, and `checks` counts
    how many checks there have been. If `auto` is set, it's called with each request
    as soon as it's issued, and may complete it right then.

    """
    def __init__(self, readiness: t.Optional[t.Callable[[], bool]]=None,
                 auto: t.Optional[t.Callable[[SimulatedRequest], None]]=None) -> None:
        self.readiness = readiness or (lambda: True)
        self.auto = auto
        self.requests: t.List[SimulatedRequest] = []
        self.checks = 0

    def can_issue(self) -> bool:
        self.checks += 1
        return self.readiness()

    def outstanding(self) -> t.List[SimulatedRequest]:
        return [req for req in self.requests if not req.completed]

    def fetch(self, url: str, on_success: SuccessCallback, on_failure: FailureCallback,
              headers: t.Optional[t.Mapping[str, str]]=None) -> None:
        self._issue(SimulatedRequest("GET", url, None, headers, on_success, on_failure))

    def post(self, url: str, parameters: t.Mapping[str, str],
             on_success: SuccessCallback, on_failure: FailureCallback,
             headers: t.Optional[t.Mapping[str, str]]=None) -> None:
        self._issue(SimulatedRequest("POST", url, parameters, headers, on_success, on_failure))

    def _issue(self, request: SimulatedRequest) -> None:
        logger.debug("issued %s %s", request.method, request.url)
        self.requests.append(request)
        if self.auto:
            self.auto(request)

@dataclass(order=True)
class _Timer:
    deadline: float
    seq: int
    callback: Callback = field(compare=False)

UsageSetting = t.Union[float, t.Iterator[float]]

class SimulatedHost(Host):
    """A Host whose clock and CPU accounting are set by the caller

    The CPU figures may be given as numbers, or as iterators which supply the value
    for each successive tick; an exhausted iterator keeps its last value.

    """
    def __init__(self, config: t.Optional[SchedulerConfig]=None,
                 http: t.Optional[SimulatedHttpService]=None) -> None:
        self.config = config or SchedulerConfig()
        self.primary_channel = self.config.default_channel
        self.registry = ChannelRegistry()
        self.events = EventHub()
        self.http: SimulatedHttpService = http or SimulatedHttpService()
        self.now = 0.0
        self.ticks = 0
        self.budget = self.config.cpu_budget_ms
        self._usage_setting: UsageSetting = 0.0
        self._average_setting: UsageSetting = 0.0
        self._usage = 0.0
        self._average = 0.0
        self._timers: t.List[_Timer] = []
        self._timer_ids = itertools.count()

    def set_usage(self, usage: t.Union[float, t.Iterable[float]],
                  average: t.Optional[t.Union[float, t.Iterable[float]]]=None) -> None:
        """Set the CPU figures

        Numbers take effect immediately. An iterable supplies one value at the start of
        each following tick of the primary channel.

        """
        if isinstance(usage, (int, float)):
            self._usage_setting = self._usage = float(usage)
        else:
            self._usage_setting = iter(usage)
        if isinstance(average, (int, float)):
            self._average_setting = self._average = float(average)
        elif average is not None:
            self._average_setting = iter(average)

    @staticmethod
    def _next(setting: UsageSetting, last: float) -> float:
        if isinstance(setting, (int, float)):
            return float(setting)
        return next(setting, last)

    def cpu_usage(self) -> float:
        return self._usage

    def average_cpu_usage(self) -> float:
        return self._average

    def cpu_budget(self) -> float:
        return self.budget

    def call_later(self, seconds: float, callback: Callback) -> None:
        heapq.heappush(self._timers, _Timer(self.now + max(seconds, 0.0), next(self._timer_ids), callback))

    def pending_timers(self) -> int:
        return len(self._timers)

    def advance(self, seconds: float) -> None:
        "Move the clock forward, calling due timers in deadline order."
        until = self.now + seconds
        while self._timers and self._timers[0].deadline <= until:
            timer = heapq.heappop(self._timers)
            self.now = max(self.now, timer.deadline)
            timer.callback()
        self.now = until

    def tick(self, channel: t.Optional[str]=None) -> int:
        """Run one tick of `channel`, the primary channel by default

        On the primary channel, iterable CPU settings advance to their next value
        first. Returns how many callbacks ran.

        """
        channel = channel or self.primary_channel
        if channel == self.primary_channel:
            self.ticks += 1
            self._usage = self._next(self._usage_setting, self._usage)
            self._average = self._next(self._average_setting, self._average)
        return self.registry.run(channel)

    def run_until(self, predicate: t.Callable[[], bool], max_ticks: int=1000,
                  interval: t.Optional[float]=None, channel: t.Optional[str]=None) -> int:
        """Advance by `interval` and tick, until `predicate()` is true

        Returns the number of ticks it took. The interval defaults to the configured
        tick interval.

        """
        if interval is None:
            interval = self.config.tick_interval
        for count in range(max_ticks + 1):
            if predicate():
                return count
            if count == max_ticks:
                break
            self.advance(interval)
            self.tick(channel)
        raise SimulationStalled(f"predicate still false after {max_ticks} ticks")
