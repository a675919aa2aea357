"""Tasks, the drivers that step them once per tick, and the ways a task blocks

A Task is an ExecutionContext plus a driver: a periodic callback registered with
the host under a name unique to the Task. On each tick of the Task's channel the
driver does exactly one of two things. If the context hasn't finished, it resumes
it once. If it has, it stores the terminal outcome in `Task.results` and
deregisters itself. Those never happen in the same tick, so a task whose function
returns during tick N becomes Completed on tick N+1.

Tasks are made with a TaskFactory, which we get from `Scheduler.task`:

```
fetch = scheduler.task(fetch_and_parse)
task = fetch.start(url)
...
# from inside some other task:
parsed = await wait(task)
```

`start` returns right away; the function doesn't run until the first tick.

Inside a task, `wait`, `Scheduler.quota` and `Scheduler.delay` block only that task,
never the tick. Each suspends the task's context and lets the driver return.

"""
from __future__ import annotations
from tickio.adapters import Adapters
from tickio.core import ContextState, ExecutionContext, suspend, park
from tickio.host import Host
from tickio.outcome import Outcome, Error
from tickio.quota import QuotaMonitor
import enum
import functools
import logging
import typing as t

__all__ = [
    'TaskState',
    'Task',
    'TaskFactory',
    'Scheduler',
    'wait',
    'wait_outcome',
    'wait_all',
]

logger = logging.getLogger(__name__)

T = t.TypeVar('T')

class TaskState(enum.Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUSPENDED = "suspended"
    COMPLETED = "completed"

def _function_name(function: t.Any) -> str:
    if isinstance(function, functools.partial):
        return _function_name(function.func)
    return getattr(function, '__qualname__', None) or type(function).__name__

class Task(t.Generic[T]):
    """One resumable unit of work, driven by its own periodic callback

    `results` is None until the Task is Completed, then holds a `Success` with the
    function's return value or a `Faulted` with the exception it raised. It's set
    exactly once. The driver is registered from creation until that moment, and
    never afterwards.

    Nothing but the driver may resume the context.

    """
    def __init__(self, host: Host, context: ExecutionContext, driver_name: str, channel: str,
                 on_complete: t.Optional[t.Callable[[Task], None]]=None) -> None:
        self.host = host
        self.context = context
        self.driver_name = driver_name
        self.channel = channel
        self.results: t.Optional[Outcome] = None
        self.on_complete = on_complete

    def __repr__(self) -> str:
        return f"<Task {self.driver_name} on {self.channel} {self.state.value}>"

    @property
    def done(self) -> bool:
        return self.results is not None

    @property
    def state(self) -> TaskState:
        if self.results is not None:
            return TaskState.COMPLETED
        elif self.context.state is ContextState.PENDING:
            return TaskState.PENDING
        elif self.context.state is ContextState.RUNNING:
            return TaskState.RUNNING
        else:
            # finished contexts which haven't been finalized yet count as suspended
            return TaskState.SUSPENDED

    def _drive(self) -> None:
        if self.context.finished:
            self.results = self.context.outcome
            self.host.deregister(self.channel, self.driver_name)
            if isinstance(self.results, Error):
                logger.error("%s: faulted", self.driver_name, exc_info=self.results.error)
            else:
                logger.debug("%s: completed", self.driver_name)
            if self.on_complete is not None:
                self.on_complete(self)
        elif self.context.ready:
            self.context.resume()

class TaskFactory(t.Generic[T]):
    """Makes Tasks running one function on one channel

    Each `start` makes an independent Task, with its own context and driver, so any
    number may be live at once.

    """
    def __init__(self, scheduler: Scheduler, function: t.Callable[..., t.Any], channel: str) -> None:
        self.scheduler = scheduler
        self.function = function
        self.channel = channel

    def __repr__(self) -> str:
        return f"<TaskFactory {_function_name(self.function)} on {self.channel}>"

    def start(self, *args: t.Any, **kwargs: t.Any) -> Task[T]:
        return self.scheduler._start(self.function, self.channel, args, kwargs)

class Scheduler:
    """Creates Tasks on a host, and implements the blocking operations that need the host

    Driver names are made unique by the host's registry, so any number of Schedulers may
    share one host.

    """
    def __init__(self, host: Host, channel: t.Optional[str]=None) -> None:
        self.host = host
        self.channel = channel or host.primary_channel
        self.quota_monitor = QuotaMonitor(host)
        self._live: t.Dict[str, Task] = {}
        self._adapters: t.Optional[Adapters] = None

    def task(self, function: t.Callable[..., t.Any], channel: t.Optional[str]=None) -> TaskFactory:
        return TaskFactory(self, function, channel or self.channel)

    def spawn(self, function: t.Callable[..., t.Any], *args: t.Any,
              channel: t.Optional[str]=None, **kwargs: t.Any) -> Task:
        return self.task(function, channel).start(*args, **kwargs)

    def _start(self, function: t.Callable[..., t.Any], channel: str,
               args: t.Sequence[t.Any], kwargs: t.Mapping[str, t.Any]) -> Task:
        driver_name = self.host.registry.unique_name(_function_name(function))
        task: Task = Task(self.host, ExecutionContext(function, args, kwargs), driver_name, channel,
                          self._completed)
        self.host.register(channel, driver_name, task._drive)
        self._live[driver_name] = task
        logger.debug("%s: started on %s", driver_name, channel)
        return task

    def pending(self) -> t.List[Task]:
        "The Tasks started by this Scheduler which haven't Completed, oldest first."
        return list(self._live.values())

    def _completed(self, task: Task) -> None:
        del self._live[task.driver_name]

    def adapters(self) -> Adapters:
        if self._adapters is None:
            self._adapters = Adapters(self)
        return self._adapters

    async def quota(self, percent: float) -> None:
        """Suspend once if we're at or over `percent` of the CPU budget

        Call this periodically inside tight loops. Otherwise it returns immediately.

        """
        if self.quota_monitor.should_yield(percent):
            return await suspend()

    async def delay(self, milliseconds: float) -> None:
        "Suspend for `milliseconds` of wall-clock time, measured by the host's timers."
        seconds = milliseconds / 1000
        if seconds <= 0:
            await suspend()
            return
        await park(functools.partial(self.host.call_later, seconds))

async def wait_outcome(task: Task[T]) -> Outcome:
    """Suspend until `task` is Completed, then return its tagged outcome

    Only the calling context blocks; `task` keeps being driven by its own driver.

    """
    while task.results is None:
        await suspend()
    return task.results

async def wait(task: Task[T]) -> T:
    """Suspend until `task` is Completed, then return its value or raise its exception

    Unlike `Outcome.unwrap`, this may be called any number of times on the same task.

    """
    result = await wait_outcome(task)
    if isinstance(result, Error):
        raise result.error
    return result.value

async def wait_all(tasks: t.Iterable[Task[T]]) -> t.List[T]:
    "Wait for each of `tasks` in turn, and return all their values."
    return [await wait(task) for task in tasks]
