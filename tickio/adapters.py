"""Turning callback-style host operations into Tasks

A host operation of the shape "start it, and get called back on success or on
failure" becomes an `async def` which looks like a blocking call:

```
record = await http_get(host.http, "https://example.com/")
```

The shape is always the same, and lives in `complete_callback`:

1. Suspend once per tick until the operation can be issued. That throttles how
   many operations are outstanding, and since we suspend on every check, a task
   waiting here never holds on to the tick.
2. Issue the operation with a pair of callbacks. Each one records a normalized
   result and clears our waiting flag.
3. Suspend once per tick until the flag is cleared.
4. Return the normalized result.

There's no backoff in either loop: under sustained non-readiness we check once
per tick indefinitely.

`Adapters` binds the concrete adapters to a Scheduler, so that calling one gives
back a Task to `wait` on.

"""
from __future__ import annotations
from dataclasses import dataclass, field
from tickio.core import suspend
from tickio.host import EventHub, HttpService
import functools
import logging
import types
import typing as t
if t.TYPE_CHECKING:
    from tickio.scheduler import Scheduler, TaskFactory

__all__ = [
    'FAILURE_CODE',
    'ResultRecord',
    'complete_callback',
    'http_get',
    'http_post',
    'wait_event',
    'Adapters',
]

logger = logging.getLogger(__name__)

FAILURE_CODE = 400
"The status code we synthesize when an operation reports failure"

def _frozen_headers(headers: t.Optional[t.Mapping[str, str]]) -> t.Mapping[str, str]:
    return types.MappingProxyType(dict(headers or {}))

@dataclass(frozen=True)
class ResultRecord:
    """The normalized result of a callback-style request

    Failures have the same shape as successes: the reason as content, no headers, and
    a client-error status code. Callers can handle both paths by looking at `code`.

    The headers are copied into a read-only mapping on construction. That mapping
    isn't hashable, so neither are records.

    """
    content: str
    length: int
    headers: t.Mapping[str, str] = field(default_factory=dict)
    code: int = 200
    __hash__ = None # type: ignore

    def __post_init__(self) -> None:
        object.__setattr__(self, 'headers', _frozen_headers(self.headers))

    @classmethod
    def success(cls, content: str, length: int,
                headers: t.Optional[t.Mapping[str, str]], code: int) -> ResultRecord:
        return cls(content, length, headers or {}, code)

    @classmethod
    def failure(cls, reason: str) -> ResultRecord:
        return cls(reason, len(reason), {}, FAILURE_CODE)

    @property
    def ok(self) -> bool:
        return 200 <= self.code < 300

T = t.TypeVar('T')

async def complete_callback(
        ready: t.Callable[[], bool],
        issue: t.Callable[[t.Callable[..., None], t.Callable[..., None]], t.Any],
        succeed: t.Callable[..., T],
        fail: t.Callable[..., T],
) -> T:
    """Issue a callback-style operation once `ready()` and block until it calls back

    `issue` is called with two callbacks, for success and for failure; whichever is
    called first has its arguments converted with `succeed` or `fail` respectively,
    and that's our return value. Later calls are ignored.

    """
    while not ready():
        await suspend()
    waiting = True
    result: t.Optional[T] = None
    def on_success(*args: t.Any) -> None:
        nonlocal waiting, result
        if waiting:
            result = succeed(*args)
            waiting = False
    def on_failure(*args: t.Any) -> None:
        nonlocal waiting, result
        if waiting:
            result = fail(*args)
            waiting = False
    issue(on_success, on_failure)
    while waiting:
        await suspend()
    return t.cast(T, result)

async def http_get(http: HttpService, url: str,
                   headers: t.Optional[t.Mapping[str, str]]=None) -> ResultRecord:
    logger.debug("GET %s", url)
    return await complete_callback(
        http.can_issue,
        lambda on_success, on_failure: http.fetch(url, on_success, on_failure, headers),
        ResultRecord.success, ResultRecord.failure)

async def http_post(http: HttpService, url: str, parameters: t.Mapping[str, str],
                    headers: t.Optional[t.Mapping[str, str]]=None) -> ResultRecord:
    logger.debug("POST %s", url)
    return await complete_callback(
        http.can_issue,
        lambda on_success, on_failure: http.post(url, parameters, on_success, on_failure, headers),
        ResultRecord.success, ResultRecord.failure)

def _always() -> bool:
    return True

def _arguments(*args: t.Any) -> t.Tuple[t.Any, ...]:
    return args

async def wait_event(events: EventHub, name: str) -> t.Tuple[t.Any, ...]:
    "Block until the named event next fires, and return its arguments."
    return await complete_callback(
        _always,
        lambda on_fire, _: events.once(name, on_fire),
        _arguments, _arguments)

class Adapters:
    "The concrete adapters, bound to a Scheduler and its host"
    http_get: TaskFactory[ResultRecord]
    http_post: TaskFactory[ResultRecord]
    wait_event: TaskFactory[t.Tuple[t.Any, ...]]

    def __init__(self, scheduler: Scheduler) -> None:
        host = scheduler.host
        self.http_get = scheduler.task(functools.partial(http_get, host.http))
        self.http_post = scheduler.task(functools.partial(http_post, host.http))
        self.wait_event = scheduler.task(functools.partial(wait_event, host.events))
