import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from devrelay.relay.errors import UnknownCommand
from devrelay.relay.store import CommandStore
from devrelay.state import CommandStatus


class _Clock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestCommandStore(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = _Clock()
        self.store = CommandStore(clock=self.clock)

    def test_ids_increase_and_are_never_reused(self) -> None:
        first = self.store.create("list_tabs")
        second = self.store.create("list_tabs")
        self.store.delete(second)
        third = self.store.create("list_tabs")
        self.assertEqual([first, second, third], [1, 2, 3])

    def test_create_inserts_pending_record(self) -> None:
        command_id = self.store.create("click_element", {"selector": "#go"})
        record = self.store.get(command_id)
        self.assertIsNotNone(record)
        self.assertEqual(record.status, CommandStatus.PENDING)
        self.assertIsNone(record.result)
        self.assertEqual(record.created_at, 1000.0)
        self.assertEqual(record.params, {"selector": "#go"})

    def test_params_are_copied(self) -> None:
        params = {"url": "https://example.com"}
        command_id = self.store.create("navigate_to", params)
        params["url"] = "changed"
        self.assertEqual(self.store.get(command_id).params["url"], "https://example.com")

    def test_get_missing_returns_none(self) -> None:
        self.assertIsNone(self.store.get(42))

    def test_list_pending_only_exposes_pending_commands(self) -> None:
        done = self.store.create("list_tabs")
        failed = self.store.create("get_tab", {"tabId": 3})
        waiting = self.store.create("reload_tab", {"tabId": 7})
        self.store.set_result(done, True, ["tab"])
        self.store.set_result(failed, False, {"error": "no tab"})
        self.assertEqual(
            self.store.list_pending(),
            [{"id": waiting, "action": "reload_tab", "params": {"tabId": 7}}],
        )
        self.assertEqual(self.store.pending_count(), 1)

    def test_set_result_completes(self) -> None:
        command_id = self.store.create("click_element")
        self.assertTrue(self.store.set_result(command_id, True, {"clicked": True}))
        record = self.store.get(command_id)
        self.assertEqual(record.status, CommandStatus.COMPLETED)
        self.assertEqual(record.result, {"clicked": True})

    def test_status_is_monotonic(self) -> None:
        command_id = self.store.create("click_element")
        self.store.set_result(command_id, False, {"error": "missing element"})
        self.assertFalse(self.store.set_result(command_id, True, {"clicked": True}))
        record = self.store.get(command_id)
        self.assertEqual(record.status, CommandStatus.ERROR)
        self.assertEqual(record.error_message(), "missing element")

    def test_set_result_for_unknown_id_signals_unknown(self) -> None:
        with self.assertRaises(UnknownCommand) as ctx:
            self.store.set_result(99, True, None)
        self.assertEqual(ctx.exception.command_id, 99)

    def test_delete_is_idempotent(self) -> None:
        command_id = self.store.create("list_tabs")
        self.store.delete(command_id)
        self.store.delete(command_id)
        self.assertNotIn(command_id, self.store)
        self.assertEqual(len(self.store), 0)

    def test_sweep_removes_exactly_the_old_records(self) -> None:
        old_pending = self.store.create("navigate_to")
        old_done = self.store.create("list_tabs")
        self.store.set_result(old_done, True, [])
        self.clock.now += 30
        young = self.store.create("reload_tab")
        self.clock.now += 31

        removed = self.store.sweep_older_than(60)

        self.assertEqual(sorted(removed), [old_pending, old_done])
        self.assertNotIn(old_pending, self.store)
        self.assertNotIn(old_done, self.store)
        self.assertIn(young, self.store)

    def test_sweep_keeps_records_exactly_at_max_age(self) -> None:
        command_id = self.store.create("list_tabs")
        self.clock.now += 60
        self.assertEqual(self.store.sweep_older_than(60), [])
        self.assertIn(command_id, self.store)


if __name__ == "__main__":
    unittest.main()
