"""The interface between tickio and the host that grants it execution time

The host owns time: it calls our periodic callbacks once per tick, it tells us how
much CPU we've used, and it runs timers for us. It also owns every operation our
adapters wrap; those are exposed as small callback-style services.

Nothing in here knows how a particular host actually gets its ticks; see
`tickio.simulated` and `tickio.trio_host` for the two we ship.

"""
from __future__ import annotations
import abc
import itertools
import logging
import typing as t

from tickio.exceptions import RegistrationError

__all__ = [
    'PRIMARY_CHANNEL',
    'ChannelRegistry',
    'EventHub',
    'HttpService',
    'Host',
]

logger = logging.getLogger(__name__)

PRIMARY_CHANNEL = "tick"

Callback = t.Callable[[], None]
SuccessCallback = t.Callable[[str, int, t.Mapping[str, str], int], None]
FailureCallback = t.Callable[[str], None]

class ChannelRegistry:
    """Periodic callbacks, grouped by channel and named uniquely within a channel

    Running a channel calls each of its callbacks once, in the order they were
    registered. The set of callbacks is fixed when the run starts: a callback
    registered during a run first runs on the next one, and a callback deregistered
    during a run, before its turn came, doesn't run at all.

    """
    def __init__(self) -> None:
        self._channels: t.Dict[str, t.Dict[str, Callback]] = {}
        self._ids = itertools.count(1)

    def unique_name(self, prefix: str) -> str:
        "Make a name which no other call to unique_name on this registry will return."
        return f"{prefix}#{next(self._ids)}"

    def register(self, channel: str, name: str, fn: Callback) -> None:
        callbacks = self._channels.setdefault(channel, {})
        if name in callbacks:
            raise RegistrationError(channel, name, "already registered")
        logger.debug("registering %s on channel %s", name, channel)
        callbacks[name] = fn

    def deregister(self, channel: str, name: str) -> None:
        callbacks = self._channels.get(channel, {})
        if name not in callbacks:
            raise RegistrationError(channel, name, "not registered")
        logger.debug("deregistering %s from channel %s", name, channel)
        del callbacks[name]
        if not callbacks:
            del self._channels[channel]

    def is_registered(self, channel: str, name: str) -> bool:
        return name in self._channels.get(channel, {})

    def names(self, channel: str) -> t.List[str]:
        return list(self._channels.get(channel, {}))

    def channels(self) -> t.List[str]:
        return list(self._channels)

    def run(self, channel: str) -> int:
        "Call every callback on this channel once; return how many we called."
        count = 0
        for name, fn in list(self._channels.get(channel, {}).items()):
            if self._channels.get(channel, {}).get(name) is not fn:
                continue
            fn()
            count += 1
        return count

class EventHub:
    """Named host events, with one-shot listeners

    A listener is called at most once, by the first `fire` of its event after it was
    registered, with that fire's arguments. Listeners registered while an event is
    firing wait for the next fire.

    """
    def __init__(self) -> None:
        self._listeners: t.Dict[str, t.List[t.Callable[..., None]]] = {}

    def once(self, name: str, callback: t.Callable[..., None]) -> None:
        self._listeners.setdefault(name, []).append(callback)

    def listening(self, name: str) -> int:
        return len(self._listeners.get(name, []))

    def fire(self, name: str, *args: t.Any) -> int:
        listeners = self._listeners.pop(name, [])
        logger.debug("firing %s%r to %d listeners", name, args, len(listeners))
        for cb in listeners:
            cb(*args)
        return len(listeners)

class HttpService:
    """Callback-style HTTP requests

    Exactly one of the two callbacks is called for each issued request, at some later
    point. The success callback gets the body, its length, the response headers and
    the status code; the failure callback gets a human-readable reason.

    Only issue a request when `can_issue` is true; the host may limit how many are
    outstanding at once.

    """
    @abc.abstractmethod
    def can_issue(self) -> bool: ...

    @abc.abstractmethod
    def fetch(self, url: str, on_success: SuccessCallback, on_failure: FailureCallback,
              headers: t.Optional[t.Mapping[str, str]]=None) -> None: ...

    @abc.abstractmethod
    def post(self, url: str, parameters: t.Mapping[str, str],
             on_success: SuccessCallback, on_failure: FailureCallback,
             headers: t.Optional[t.Mapping[str, str]]=None) -> None: ...

class Host:
    """Everything tickio needs from the environment that runs it

    Subclasses set `registry`, `events` and `http`, and implement the timer and CPU
    accounting methods. All CPU figures are in the same unit, milliseconds of CPU
    time per tick, and must be refreshed at least once per tick.

    """
    registry: ChannelRegistry
    events: EventHub
    http: HttpService
    primary_channel: str = PRIMARY_CHANNEL

    def register(self, channel: str, name: str, fn: Callback) -> None:
        "Have `fn` called once per tick of `channel` until deregistered."
        self.registry.register(channel, name, fn)

    def deregister(self, channel: str, name: str) -> None:
        self.registry.deregister(channel, name)

    def is_registered(self, channel: str, name: str) -> bool:
        return self.registry.is_registered(channel, name)

    @abc.abstractmethod
    def call_later(self, seconds: float, callback: Callback) -> None:
        "Call `callback` once, no earlier than `seconds` of wall-clock time from now."
        ...

    @abc.abstractmethod
    def cpu_usage(self) -> float:
        "CPU time used so far in the current tick."
        ...

    @abc.abstractmethod
    def average_cpu_usage(self) -> float:
        "CPU time used per tick, averaged over recent ticks."
        ...

    @abc.abstractmethod
    def cpu_budget(self) -> float:
        "The most CPU time we're allowed to use in one tick."
        ...
