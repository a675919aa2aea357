"""Cooperative tasks for hosts which give us a fixed slice of time per tick

Some hosts run our code in ticks: they call us, and we have to return before our
slice of CPU time for that tick is used up. Anything which takes longer, whether
because it waits for a network response or just has a lot of work to do, has to be
split up across many ticks.

Writing that split by hand means writing callbacks and state machines. tickio lets
us write it as straight-line code instead:

```
async def refresh(scheduler, adapters, url):
    record = await wait(adapters.http_get.start(url))
    for row in parse(record.content):
        store(row)
        await scheduler.quota(0.8)
    await scheduler.delay(5000)
```

Each `await` there suspends only this task. The host's tick carries on and
returns on time, and the task continues from the same point on some later tick.

## Tasks

`Scheduler.task` turns a function into a `TaskFactory`, and `TaskFactory.start`
makes a running `Task`. Every Task registers its own periodic callback with the
host, which resumes the task one step per tick. When the task's function returns
or raises, the next tick stores the outcome in `Task.results` and the callback
deregisters itself.

## Blocking

There is exactly one way to block: `suspend`, which hands control back to the
driver until the next tick. Everything else is a loop around it.

- `wait(task)` suspends until `task` completes, then returns its value or raises
  its exception.
- `Scheduler.quota(percent)` suspends once if we've used `percent` of this tick's
  CPU budget, and otherwise does nothing.
- `Scheduler.delay(ms)` suspends until a host timer says the time is up.

## Adapters

Host operations which report back through success and failure callbacks are
wrapped by `tickio.adapters` into functions returning a `ResultRecord`, so that
starting one as a task and waiting on it reads like a blocking call.

## Hosts

The host is whatever gives us ticks, timers and CPU figures; it's described by
`tickio.host.Host`. `tickio.simulated.SimulatedHost` is a deterministic host
stepped by hand, and `tickio.trio_host.TrioHost` is a real-time host running
under trio.

"""
from tickio.adapters import Adapters, ResultRecord, complete_callback, http_get, http_post, wait_event
from tickio.config import SchedulerConfig
from tickio.core import ContextState, ExecutionContext, ResumeStep, park, suspend
from tickio.exceptions import (
    ConfigError, ContextError, RegistrationError, SimulationStalled, SuspensionError, TickioError,
)
from tickio.host import ChannelRegistry, EventHub, Host, HttpService
from tickio.outcome import Faulted, Outcome, Success
from tickio.quota import QuotaMonitor
from tickio.scheduler import Scheduler, Task, TaskFactory, TaskState, wait, wait_all, wait_outcome
