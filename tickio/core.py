"""Explicitly resumable execution contexts, and the one primitive that suspends them

An ExecutionContext wraps a function and runs it in steps. Each call to
`ExecutionContext.resume` runs the function until it next suspends or until it
finishes, and reports which of those happened. Whoever holds the context decides
when the next step happens; in tickio that's always a Task's driver, which takes
one step per host tick.

The function suspends by awaiting `suspend()`, which is the only place we
actually yield up to the context. Everything else which "blocks" (waiting for a
Task, waiting out the CPU quota, waiting on a callback) is a loop around
`suspend()`, or around its sibling `park`, which additionally hands a wakeup
callback to some other object and keeps the context from being resumed until
that callback is called.

We don't use any coroutine runner's own suspension machinery here.
The function is an `async def` coroutine function only because that's how Python
spells "a function which can be suspended"; the objects it yields are ours, and
the only thing that's allowed to drive it is ExecutionContext.  Awaiting a trio
or asyncio primitive from inside a context is an error, and so is awaiting
`suspend()` from outside one.

"""
from __future__ import annotations
from tickio.exceptions import ContextError, SuspensionError
from tickio.outcome import Outcome, Success, Faulted
import enum
import inspect
import logging
import types
import typing as t

__all__ = [
    'ContextState',
    'ResumeStep',
    'ExecutionContext',
    'suspend',
    'park',
    'current_context',
]

logger = logging.getLogger(__name__)

class ContextState(enum.Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUSPENDED = "suspended"
    FINISHED = "finished"

class Suspend:
    "The internal type we yield up to implement `suspend`"
    __slots__ = ()

    def __repr__(self) -> str:
        return "Suspend()"

_SUSPEND = Suspend()

class Park:
    "The internal type we yield up to implement `park`"
    __slots__ = ('register',)
    def __init__(self, register: t.Callable[[t.Callable[[], None]], t.Any]) -> None:
        self.register = register

    def __repr__(self) -> str:
        return f"Park({self.register!r})"

class ResumeStep(t.NamedTuple):
    """What happened during one call to ExecutionContext.resume

    If `finished` is true, `outcome` is the terminal outcome of the function;
    otherwise the function suspended and `outcome` is None.

    """
    finished: bool
    outcome: t.Optional[Outcome]

# The context whose resume() is currently on the stack, if any.
_current: t.Optional[ExecutionContext] = None

def current_context() -> ExecutionContext:
    "Return the ExecutionContext we're running under, or raise SuspensionError."
    if _current is None:
        raise SuspensionError("not running inside an ExecutionContext; nothing could resume us")
    return _current

class ExecutionContext:
    """A function, run one step at a time

    The function is called with the stored arguments at the first `resume`, never
    before. If it returns a coroutine, every later `resume` continues that coroutine
    from its last suspension point; no new values are sent in. If it's a plain
    function, it finishes within that first step.

    If the function raises, that's still a terminal step: the exception becomes a
    `Faulted` outcome and the context is finished. We never let the exception escape
    out of `resume`, since the caller is a host callback that has no business
    handling application errors. The exceptions which aren't `Exception`s, like
    `SystemExit`, also finish the context, but they're re-raised as well.

    """
    def __init__(self, function: t.Callable[..., t.Any],
                 args: t.Sequence[t.Any]=(), kwargs: t.Optional[t.Mapping[str, t.Any]]=None) -> None:
        self.function = function
        self.args = tuple(args)
        self.kwargs = dict(kwargs or {})
        self.state = ContextState.PENDING
        self.outcome: t.Optional[Outcome] = None
        self.parked = False
        self.steps = 0
        self._coro: t.Optional[t.Coroutine[t.Any, None, t.Any]] = None
        self._park_generation = 0
        self._pending_exn: t.Optional[BaseException] = None

    def __repr__(self) -> str:
        return f"<ExecutionContext {getattr(self.function, '__qualname__', self.function)!r} {self.state.value}>"

    @property
    def finished(self) -> bool:
        return self.state is ContextState.FINISHED

    @property
    def ready(self) -> bool:
        "Whether `resume` may be called right now."
        return self.state in (ContextState.PENDING, ContextState.SUSPENDED) and not self.parked

    def resume(self) -> ResumeStep:
        global _current
        if self.state is ContextState.RUNNING:
            raise ContextError(f"{self!r} resumed from inside itself")
        elif self.state is ContextState.FINISHED:
            raise ContextError(f"{self!r} resumed after it finished")
        elif self.parked:
            raise ContextError(f"{self!r} resumed while parked")
        previous = _current
        _current = self
        self.state = ContextState.RUNNING
        self.steps += 1
        try:
            if self._coro is None:
                value = self.function(*self.args, **self.kwargs)
                if not inspect.iscoroutine(value):
                    return self._finish(Success(value))
                self._coro = value
            if self._pending_exn is not None:
                exn, self._pending_exn = self._pending_exn, None
                yielded = self._coro.throw(exn)
            else:
                yielded = self._coro.send(None)
        except StopIteration as e:
            return self._finish(Success(e.value))
        except Exception as e:
            logger.debug("%r: raised %r", self, e)
            return self._finish(Faulted(e))
        except BaseException as e:
            # the coroutine is dead either way; finish, but let KeyboardInterrupt and
            # friends keep propagating
            self._finish(Faulted(e))
            raise
        finally:
            _current = previous
        return self._suspended(yielded)

    def _suspended(self, yielded: t.Any) -> ResumeStep:
        self.state = ContextState.SUSPENDED
        if isinstance(yielded, Suspend):
            logger.debug("%r: suspended", self)
        elif isinstance(yielded, Park):
            logger.debug("%r: parked on %r", self, yielded.register)
            self.parked = True
            self._park_generation += 1
            try:
                yielded.register(self._make_wake(self._park_generation))
            except Exception as e:
                # raise it out of the `park` call on the next step
                self.parked = False
                self._pending_exn = e
        else:
            assert self._coro is not None
            self._coro.close()
            return self._finish(Faulted(TypeError(
                "execution contexts can only yield tickio suspensions", yielded)))
        return ResumeStep(False, None)

    def _finish(self, outcome: Outcome) -> ResumeStep:
        logger.debug("%r: finished with %s", self, outcome)
        self.state = ContextState.FINISHED
        self.outcome = outcome
        self._coro = None
        return ResumeStep(True, outcome)

    def _make_wake(self, generation: int) -> t.Callable[[], None]:
        def wake() -> None:
            if self.parked and generation == self._park_generation:
                logger.debug("%r: woken", self)
                self.parked = False
        return wake

@types.coroutine
def suspend() -> t.Generator[t.Any, t.Any, None]:
    """Return control to whatever is driving the current ExecutionContext

    We'll continue the next time the context is resumed; for a Task, that's the next
    tick of its channel.

    """
    current_context()
    yield _SUSPEND

@types.coroutine
def park(register: t.Callable[[t.Callable[[], None]], t.Any]) -> t.Generator[t.Any, t.Any, None]:
    """Suspend, and don't let the current context be resumed until `register`'s callback is called

    `register` is called with a zero-argument wakeup callback once we've suspended;
    it should arrange for someone to call that callback later, e.g. by passing it to
    a host timer. The wakeup callback only works once, and calling it immediately is
    fine. If `register` raises, the exception is raised from this call on the next
    step.

    """
    current_context()
    yield Park(register)
