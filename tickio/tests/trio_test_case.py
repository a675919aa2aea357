"A trio-enabled variant of unittest.TestCase"
import trio
import unittest
import contextlib
import functools
import sys
import types
import warnings
from trio import Nursery

@contextlib.contextmanager
def raise_unraisables():
    unraisables = []
    try:
        orig_unraisablehook, sys.unraisablehook = sys.unraisablehook, unraisables.append
        yield
    finally:
        sys.unraisablehook = orig_unraisablehook
        if unraisables:
            raise BaseExceptionGroup("unraisable exceptions", [unr.exc_value for unr in unraisables])

class TrioTestCase(unittest.TestCase):
    "A trio-enabled variant of unittest.TestCase"
    nursery: Nursery

    async def asyncSetUp(self) -> None:
        "Asynchronously set up resources for tests in this TestCase"
        pass

    async def asyncTearDown(self) -> None:
        "Asynchronously clean up resources for tests in this TestCase"
        pass

    def __init__(self, methodName='runTest') -> None:
        test = getattr(type(self), methodName, None)
        if test is None:
            # collectors instantiate the class itself with the default method name
            super().__init__(methodName)
            return
        @functools.wraps(test)
        async def test_with_setup() -> None:
            async with trio.open_nursery() as nursery:
                self.nursery = nursery
                await self.asyncSetUp()
                try:
                    await test(self)
                except BaseException as exn:
                    try:
                        await self.asyncTearDown()
                    except BaseException as teardown_exn:
                        raise BaseExceptionGroup("test and teardown both failed", [exn, teardown_exn])
                    else:
                        raise
                else:
                    await self.asyncTearDown()
                nursery.cancel_scope.cancel()
        @functools.wraps(test_with_setup)
        def sync_test_with_setup(self) -> None:
            # Fail the test on any "coroutine was never awaited" warnings; those are
            # raised from __del__, so we also need raise_unraisables to see them.
            with raise_unraisables():
                with warnings.catch_warnings():
                    warnings.filterwarnings('error', message='.*was never awaited', category=RuntimeWarning)
                    trio.run(test_with_setup)
        setattr(self, methodName, types.MethodType(sync_test_with_setup, self))
        super().__init__(methodName)

class Test(unittest.TestCase):
    def test_coro_warning(self) -> None:
        class Test(TrioTestCase):
            async def test(self):
                trio.sleep(0)
        with self.assertRaises(BaseExceptionGroup) as cm:
            Test('test').test()
        self.assertIsInstance(cm.exception.exceptions[0], RuntimeWarning)

    def test_default_method_name(self) -> None:
        class Test(TrioTestCase):
            async def test(self):
                pass
        self.assertIsInstance(Test(), unittest.TestCase)
        Test('test').test()
