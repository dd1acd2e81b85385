import json
import tempfile
import unittest
from pathlib import Path

from pitg.kernel.history import ConversationHistory
from pitg.kernel.keys import ConversationId


class TestConversationHistory(unittest.TestCase):
    def test_messages_are_kept_per_conversation(self) -> None:
        h = ConversationHistory()
        h.add_message(ConversationId(1), "user", "hi")
        h.add_message(ConversationId(1, 2), "user", "topic")
        h.add_message(ConversationId(1), "assistant", "hello")

        self.assertEqual([m.content for m in h.get_history(ConversationId(1))], ["hi", "hello"])
        self.assertEqual([m.content for m in h.get_history(ConversationId(1, 2))], ["topic"])
        self.assertEqual(h.get_history(ConversationId(99)), [])
        self.assertEqual(h.count(), 2)

    def test_oldest_messages_are_trimmed(self) -> None:
        h = ConversationHistory(max_history=3)
        conv = ConversationId(1)
        for i in range(5):
            h.add_message(conv, "user", f"m{i}")

        self.assertEqual([m.content for m in h.get_history(conv)], ["m2", "m3", "m4"])

    def test_get_session_is_a_copy(self) -> None:
        h = ConversationHistory()
        conv = ConversationId(7, 8)
        h.add_message(conv, "user", "hi")

        sess = h.get_session(conv)
        assert sess is not None
        self.assertEqual((sess.chat_id, sess.thread_id), (7, 8))
        sess.messages.clear()
        self.assertEqual(len(h.get_history(conv)), 1)
        self.assertIsNone(h.get_session(ConversationId(7)))

    def test_clear_and_clear_all(self) -> None:
        h = ConversationHistory()
        h.add_message(ConversationId(1), "user", "a")
        h.add_message(ConversationId(2), "user", "b")

        self.assertTrue(h.clear(ConversationId(1)))
        self.assertFalse(h.clear(ConversationId(1)))
        self.assertEqual(h.clear_all(), 1)
        self.assertEqual(h.count(), 0)

    def test_persisted_history_is_reloaded(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "state" / "history.json"
            h = ConversationHistory(persist_path=path)
            h.add_message(ConversationId(5, 6), "user", "remember me")
            h.add_message(ConversationId(5, 6), "assistant", "ok")

            data = json.loads(path.read_text(encoding="utf-8"))
            self.assertIn("5-6", data)

            again = ConversationHistory(persist_path=path)
            self.assertEqual(
                [(m.role, m.content) for m in again.get_history(ConversationId(5, 6))],
                [("user", "remember me"), ("assistant", "ok")],
            )

    def test_unreadable_entries_are_dropped(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "history.json"
            path.write_text(json.dumps({"1": {"chat_id": "not-a-number"}, "2": {"chat_id": 2}}), encoding="utf-8")

            with self.assertLogs("pitg.history", level="WARNING"):
                h = ConversationHistory(persist_path=path)

            self.assertEqual(h.count(), 1)


if __name__ == "__main__":
    unittest.main()
