from tickio.exceptions import RegistrationError
from tickio.host import ChannelRegistry, EventHub
import typing as t
import unittest

class TestChannelRegistry(unittest.TestCase):
    def setUp(self) -> None:
        self.registry = ChannelRegistry()
        self.log: t.List[str] = []

    def append(self, name: str) -> t.Callable[[], None]:
        return lambda: self.log.append(name)

    def test_registration_order(self) -> None:
        for name in ["b", "a", "c"]:
            self.registry.register("tick", name, self.append(name))
        self.assertEqual(self.registry.run("tick"), 3)
        self.assertEqual(self.log, ["b", "a", "c"])

    def test_channels_are_separate(self) -> None:
        self.registry.register("tick", "a", self.append("a"))
        self.registry.register("slow", "a", self.append("slow a"))
        self.registry.run("slow")
        self.assertEqual(self.log, ["slow a"])
        self.assertEqual(self.registry.run("nonexistent"), 0)

    def test_duplicate(self) -> None:
        self.registry.register("tick", "a", self.append("a"))
        with self.assertRaises(RegistrationError):
            self.registry.register("tick", "a", self.append("a"))

    def test_deregister_missing(self) -> None:
        with self.assertRaises(RegistrationError):
            self.registry.deregister("tick", "a")

    def test_deregister(self) -> None:
        self.registry.register("tick", "a", self.append("a"))
        self.assertTrue(self.registry.is_registered("tick", "a"))
        self.registry.deregister("tick", "a")
        self.assertFalse(self.registry.is_registered("tick", "a"))
        self.assertEqual(self.registry.channels(), [])
        self.registry.run("tick")
        self.assertEqual(self.log, [])

    def test_register_during_run(self) -> None:
        def registers() -> None:
            self.log.append("registers")
            if not self.registry.is_registered("tick", "late"):
                self.registry.register("tick", "late", self.append("late"))
        self.registry.register("tick", "registers", registers)
        self.registry.run("tick")
        self.assertEqual(self.log, ["registers"])
        self.registry.run("tick")
        self.assertEqual(self.log, ["registers", "registers", "late"])

    def test_deregister_during_run(self) -> None:
        def removes() -> None:
            self.log.append("removes")
            self.registry.deregister("tick", "victim")
        self.registry.register("tick", "removes", removes)
        self.registry.register("tick", "victim", self.append("victim"))
        self.assertEqual(self.registry.run("tick"), 1)
        self.assertEqual(self.log, ["removes"])

    def test_deregister_self_during_run(self) -> None:
        def once() -> None:
            self.log.append("once")
            self.registry.deregister("tick", "once")
        self.registry.register("tick", "once", once)
        self.registry.register("tick", "after", self.append("after"))
        self.registry.run("tick")
        self.registry.run("tick")
        self.assertEqual(self.log, ["once", "after", "after"])

class TestEventHub(unittest.TestCase):
    def test_once(self) -> None:
        hub = EventHub()
        fired: t.List[t.Tuple[t.Any, ...]] = []
        hub.once("player_join", lambda *args: fired.append(args))
        self.assertEqual(hub.listening("player_join"), 1)
        self.assertEqual(hub.fire("player_join", "alice", 3), 1)
        self.assertEqual(hub.fire("player_join", "bob", 4), 0)
        self.assertEqual(fired, [("alice", 3)])

    def test_listen_during_fire(self) -> None:
        hub = EventHub()
        fired: t.List[str] = []
        def relisten(name: str) -> None:
            fired.append(name)
            hub.once("ev", relisten)
        hub.once("ev", relisten)
        hub.fire("ev", "first")
        self.assertEqual(fired, ["first"])
        hub.fire("ev", "second")
        self.assertEqual(fired, ["first", "second"])
