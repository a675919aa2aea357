"""A real-time host, driven by a trio run loop

`TrioHost.run` plays the part of the host: it ticks the channels on a fixed
interval, measures the process CPU time spent in each tick, and runs timers and
HTTP requests as trio tasks in its nursery. Callbacks from those trio tasks only
record results and wake parked contexts; task code itself only ever runs inside a
tick.

Each channel has a cadence, in ticks: the primary channel runs every tick, and a
channel with cadence 5 runs every fifth tick. Channels without a cadence never run.

```
host = TrioHost(SchedulerConfig(tick_interval=0.01))
scheduler = Scheduler(host)
task = scheduler.adapters().http_get.start("https://example.com/")
trio.run(functools.partial(host.run, until=lambda: task.done))
```

"""
from __future__ import annotations
from tickio.config import SchedulerConfig
from tickio.host import (
    Callback, ChannelRegistry, EventHub, FailureCallback, Host, HttpService, SuccessCallback,
)
import httpx
import logging
import time
import trio
import typing as t

__all__ = [
    'TrioHttpService',
    'TrioHost',
]

logger = logging.getLogger(__name__)

class TrioHttpService(HttpService):
    """HTTP requests made with httpx, each in its own trio task

    At most `max_outstanding` requests are in flight; `can_issue` is false while we're
    at the limit. Transport errors, including timeouts, and URLs httpx can't parse go
    to the failure callback with the error text as the reason. Any response at all,
    whatever its status, is a success.

    """
    def __init__(self, host: TrioHost, max_outstanding: int, timeout: float,
                 client: t.Optional[httpx.AsyncClient]=None) -> None:
        self.host = host
        self.max_outstanding = max_outstanding
        self.timeout = timeout
        self.outstanding = 0
        self._client = client
        self._owns_client = client is None

    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            client, self._client = self._client, None
            await client.aclose()

    def can_issue(self) -> bool:
        return self.outstanding < self.max_outstanding

    def fetch(self, url: str, on_success: SuccessCallback, on_failure: FailureCallback,
              headers: t.Optional[t.Mapping[str, str]]=None) -> None:
        self._issue("GET", url, None, headers, on_success, on_failure)

    def post(self, url: str, parameters: t.Mapping[str, str],
             on_success: SuccessCallback, on_failure: FailureCallback,
             headers: t.Optional[t.Mapping[str, str]]=None) -> None:
        self._issue("POST", url, parameters, headers, on_success, on_failure)

    def _issue(self, method: str, url: str, parameters: t.Optional[t.Mapping[str, str]],
               headers: t.Optional[t.Mapping[str, str]],
               on_success: SuccessCallback, on_failure: FailureCallback) -> None:
        self.outstanding += 1
        self.host.start_soon(self._request, method, url, parameters, headers, on_success, on_failure)

    async def _request(self, method: str, url: str, parameters: t.Optional[t.Mapping[str, str]],
                       headers: t.Optional[t.Mapping[str, str]],
                       on_success: SuccessCallback, on_failure: FailureCallback) -> None:
        try:
            try:
                response = await self.client().request(
                    method, url, data=dict(parameters) if parameters is not None else None,
                    headers=dict(headers or {}), timeout=self.timeout)
            finally:
                self.outstanding -= 1
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            reason = str(e) or type(e).__name__
            logger.debug("%s %s failed: %s", method, url, reason)
            on_failure(reason)
            return
        logger.debug("%s %s: %d", method, url, response.status_code)
        on_success(response.text, len(response.content), dict(response.headers), response.status_code)

class TrioHost(Host):
    def __init__(self, config: t.Optional[SchedulerConfig]=None,
                 client: t.Optional[httpx.AsyncClient]=None,
                 cadences: t.Optional[t.Mapping[str, int]]=None) -> None:
        self.config = config or SchedulerConfig()
        self.primary_channel = self.config.default_channel
        self.registry = ChannelRegistry()
        self.events = EventHub()
        self.http = TrioHttpService(self, self.config.max_outstanding_requests, self.config.http_timeout, client)
        self.cadences: t.Dict[str, int] = {self.primary_channel: 1, **(cadences or {})}
        self.ticks = 0
        self._nursery: t.Optional[trio.Nursery] = None
        self._queued: t.List[t.Tuple[t.Callable[..., t.Awaitable[None]], t.Tuple[t.Any, ...]]] = []
        self._tick_started: t.Optional[float] = None
        self._usage = 0.0
        self._average = 0.0

    def start_soon(self, fn: t.Callable[..., t.Awaitable[None]], *args: t.Any) -> None:
        "Run `fn` in our nursery; if we aren't running yet, as soon as we are."
        if self._nursery is None:
            self._queued.append((fn, args))
        else:
            self._nursery.start_soon(fn, *args)

    def call_later(self, seconds: float, callback: Callback) -> None:
        self.start_soon(self._timer, seconds, callback)

    async def _timer(self, seconds: float, callback: Callback) -> None:
        await trio.sleep(seconds)
        callback()

    def cpu_usage(self) -> float:
        if self._tick_started is not None:
            return (time.process_time() - self._tick_started) * 1000
        return self._usage

    def average_cpu_usage(self) -> float:
        return self._average

    def cpu_budget(self) -> float:
        return self.config.cpu_budget_ms

    def tick(self) -> None:
        "Run every channel which is due this tick, and account for the CPU time spent."
        self.ticks += 1
        self._tick_started = time.process_time()
        try:
            for channel, cadence in list(self.cadences.items()):
                if self.ticks % cadence == 0:
                    self.registry.run(channel)
        finally:
            self._usage = (time.process_time() - self._tick_started) * 1000
            self._tick_started = None
            self._average += self.config.average_weight * (self._usage - self._average)
        if self._usage > self.config.cpu_budget_ms:
            logger.warning("tick %d used %.2fms of CPU, over the %.2fms budget",
                           self.ticks, self._usage, self.config.cpu_budget_ms)

    async def run(self, until: t.Optional[t.Callable[[], bool]]=None,
                  max_ticks: t.Optional[int]=None) -> int:
        """Tick until `until()` is true or we've run `max_ticks` ticks, and return the tick count

        With neither, run until cancelled. Timers and requests still pending when we
        return are cancelled. An exception raised by a host callback, in a tick or in
        a timer, is logged and propagates out of here.

        """
        logger.info("starting; tick interval %ss, budget %sms",
                    self.config.tick_interval, self.config.cpu_budget_ms)
        count = 0
        try:
            async with trio.open_nursery() as nursery:
                self._nursery = nursery
                queued, self._queued = self._queued, []
                for fn, args in queued:
                    nursery.start_soon(fn, *args)
                while not (until and until()) and (max_ticks is None or count < max_ticks):
                    self.tick()
                    count += 1
                    await trio.sleep(self.config.tick_interval)
                nursery.cancel_scope.cancel()
        except Exception:
            logger.exception("host callback failed after %d ticks", count)
            raise
        finally:
            self._nursery = None
            with trio.CancelScope(shield=True):
                await self.http.aclose()
            logger.info("stopped after %d ticks", count)
        return count
