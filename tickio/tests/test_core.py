from tickio.core import ContextState, ExecutionContext, suspend, park, current_context
from tickio.exceptions import ContextError, SuspensionError
from tickio.outcome import Error, Value
import types
import typing as t
import unittest

class MyException(Exception):
    pass

async def count_to(n: int, log: t.List[int]) -> str:
    for i in range(n):
        log.append(i)
        await suspend()
    return "counted"

class TestExecutionContext(unittest.TestCase):
    def test_steps(self) -> None:
        log: t.List[int] = []
        ctx = ExecutionContext(count_to, (3, log))
        self.assertEqual(ctx.state, ContextState.PENDING)
        self.assertEqual(log, [])
        for i in range(3):
            step = ctx.resume()
            self.assertFalse(step.finished)
            self.assertIsNone(step.outcome)
            self.assertEqual(ctx.state, ContextState.SUSPENDED)
            self.assertEqual(log, list(range(i+1)))
        step = ctx.resume()
        self.assertTrue(step.finished)
        self.assertEqual(step.outcome, Value("counted"))
        self.assertEqual(ctx.outcome, Value("counted"))
        self.assertEqual(ctx.steps, 4)

    def test_plain_function(self) -> None:
        ctx = ExecutionContext(lambda a, b: (a, b), (1,), {'b': 2})
        step = ctx.resume()
        self.assertTrue(step.finished)
        self.assertEqual(step.outcome, Value((1, 2)))

    def test_fault_is_terminal(self) -> None:
        async def fails() -> None:
            await suspend()
            raise MyException("ha ha")
        ctx = ExecutionContext(fails)
        self.assertFalse(ctx.resume().finished)
        step = ctx.resume()
        self.assertTrue(step.finished)
        assert isinstance(step.outcome, Error)
        self.assertIsInstance(step.outcome.error, MyException)
        with self.assertRaises(ContextError):
            ctx.resume()

    def test_fault_in_plain_function(self) -> None:
        def fails() -> None:
            raise MyException("immediately")
        step = ExecutionContext(fails).resume()
        assert isinstance(step.outcome, Error)
        self.assertIsInstance(step.outcome.error, MyException)

    def test_base_exception_finishes_and_propagates(self) -> None:
        async def exits() -> None:
            await suspend()
            raise SystemExit(3)
        ctx = ExecutionContext(exits)
        ctx.resume()
        with self.assertRaises(SystemExit):
            ctx.resume()
        self.assertTrue(ctx.finished)
        assert isinstance(ctx.outcome, Error)
        self.assertIsInstance(ctx.outcome.error, SystemExit)
        with self.assertRaises(ContextError):
            ctx.resume()
        with self.assertRaises(SuspensionError):
            current_context()

    def test_reentrant_resume(self) -> None:
        ctx: ExecutionContext
        def resume_self() -> None:
            ctx.resume()
        ctx = ExecutionContext(resume_self)
        step = ctx.resume()
        assert isinstance(step.outcome, Error)
        self.assertIsInstance(step.outcome.error, ContextError)

    def test_current_context(self) -> None:
        seen = []
        ctx = ExecutionContext(lambda: seen.append(current_context()))
        ctx.resume()
        self.assertEqual(seen, [ctx])
        with self.assertRaises(SuspensionError):
            current_context()

    def test_suspend_outside_context(self) -> None:
        coro = count_to(1, [])
        with self.assertRaises(SuspensionError):
            coro.send(None)
        coro.close()

    def test_foreign_yield(self) -> None:
        @types.coroutine
        def foreign() -> t.Generator[t.Any, t.Any, None]:
            yield "not ours"
        async def uses_foreign() -> None:
            await foreign()
        step = ExecutionContext(uses_foreign).resume()
        self.assertTrue(step.finished)
        assert isinstance(step.outcome, Error)
        self.assertIsInstance(step.outcome.error, TypeError)

class TestPark(unittest.TestCase):
    def test_park_and_wake(self) -> None:
        wakes: t.List[t.Callable[[], None]] = []
        async def parks() -> str:
            await park(wakes.append)
            return "woken"
        ctx = ExecutionContext(parks)
        ctx.resume()
        self.assertTrue(ctx.parked)
        self.assertFalse(ctx.ready)
        with self.assertRaises(ContextError):
            ctx.resume()
        wakes[0]()
        self.assertTrue(ctx.ready)
        self.assertEqual(ctx.resume().outcome, Value("woken"))

    def test_stale_wake(self) -> None:
        wakes: t.List[t.Callable[[], None]] = []
        async def parks_twice() -> None:
            await park(wakes.append)
            await park(wakes.append)
        ctx = ExecutionContext(parks_twice)
        ctx.resume()
        wakes[0]()
        ctx.resume()
        self.assertTrue(ctx.parked)
        # the first wakeup was already used, and doesn't apply to the second park
        wakes[0]()
        self.assertTrue(ctx.parked)
        wakes[1]()
        self.assertFalse(ctx.parked)

    def test_immediate_wake(self) -> None:
        async def parks() -> str:
            await park(lambda wake: wake())
            return "done"
        ctx = ExecutionContext(parks)
        self.assertFalse(ctx.resume().finished)
        self.assertTrue(ctx.ready)
        self.assertEqual(ctx.resume().outcome, Value("done"))

    def test_register_raises(self) -> None:
        def broken(wake: t.Callable[[], None]) -> None:
            raise MyException("no timers today")
        async def parks() -> str:
            try:
                await park(broken)
            except MyException:
                return "caught"
            return "not caught"
        ctx = ExecutionContext(parks)
        self.assertFalse(ctx.resume().finished)
        self.assertFalse(ctx.parked)
        self.assertEqual(ctx.resume().outcome, Value("caught"))
