import subprocess
import unittest
from pathlib import Path
from unittest.mock import patch


class _TmuxRecorder:
    """subprocess.run replacement: records argv and answers from a table."""

    def __init__(self, answers=None):
        self.calls = []
        self.answers = answers or {}

    def __call__(self, argv, **kwargs):
        self.calls.append((list(argv), kwargs))
        verb = argv[1]
        code, out, err = self.answers.get(verb, (0, "", ""))
        if isinstance(code, BaseException):
            raise code
        return subprocess.CompletedProcess(argv, code, out, err)

    def verbs(self):
        return [argv[1] for argv, _ in self.calls]

    def call(self, verb):
        for argv, kwargs in self.calls:
            if argv[1] == verb:
                return argv, kwargs
        raise AssertionError(f"tmux {verb} not called: {self.verbs()}")


class TestTmuxHost(unittest.TestCase):
    def test_has_session_uses_exact_target(self) -> None:
        from pitg.runners.tmux import TmuxHost

        rec = _TmuxRecorder()
        with patch("pitg.runners.tmux.subprocess.run", rec):
            self.assertTrue(TmuxHost().has_session("pi-tg-100"))

        argv, kwargs = rec.call("has-session")
        self.assertEqual(argv, ["tmux", "has-session", "-t", "=pi-tg-100"])
        self.assertEqual(kwargs.get("timeout"), 3.0)

    def test_has_session_false_on_error_or_timeout(self) -> None:
        from pitg.runners.tmux import TmuxHost

        with patch("pitg.runners.tmux.subprocess.run", _TmuxRecorder({"has-session": (1, "", "can't find session")})):
            self.assertFalse(TmuxHost().has_session("x"))
        timeout = subprocess.TimeoutExpired(["tmux"], 3.0)
        with patch("pitg.runners.tmux.subprocess.run", _TmuxRecorder({"has-session": (timeout, "", "")})):
            self.assertFalse(TmuxHost().has_session("x"))
        with patch("pitg.runners.tmux.subprocess.run", _TmuxRecorder({"has-session": (FileNotFoundError("tmux"), "", "")})):
            self.assertFalse(TmuxHost().has_session("x"))

    def test_new_session_runs_quoted_command_in_cwd(self) -> None:
        from pitg.runners.tmux import TmuxHost

        rec = _TmuxRecorder()
        cwd = Path(__file__).resolve().parent
        with patch("pitg.runners.tmux.subprocess.run", rec):
            TmuxHost(width=120, height=40).new_session("pi-tg-1", command=["pi", "--model", "a b"], cwd=cwd)

        argv, _ = rec.call("new-session")
        self.assertEqual(
            argv,
            ["tmux", "new-session", "-d", "-s", "pi-tg-1", "-x", "120", "-y", "40", "-c", str(cwd), "pi --model 'a b'"],
        )

    def test_new_session_failure_raises(self) -> None:
        from pitg.runners.tmux import TmuxError, TmuxHost

        rec = _TmuxRecorder({"new-session": (1, "", "duplicate session: pi-tg-1\n")})
        with patch("pitg.runners.tmux.subprocess.run", rec):
            with self.assertRaises(TmuxError) as cm:
                TmuxHost().new_session("pi-tg-1", command=["pi"], cwd=Path.home())
        self.assertEqual(cm.exception.stderr, "duplicate session: pi-tg-1")

    def test_send_text_is_literal_then_enter(self) -> None:
        from pitg.runners.tmux import TmuxHost

        rec = _TmuxRecorder({"display-message": (0, "0\n", "")})
        text = 'say "hi" to $USER'
        with patch("pitg.runners.tmux.subprocess.run", rec):
            TmuxHost().send_text("pi-tg-1", text)

        sends = [argv for argv, _ in rec.calls if argv[1] == "send-keys"]
        self.assertEqual(sends[0], ["tmux", "send-keys", "-t", "=pi-tg-1:", "-l", "--", text])
        self.assertEqual(sends[1], ["tmux", "send-keys", "-t", "=pi-tg-1:", "Enter"])

    def test_send_text_multiline_uses_paste_buffer(self) -> None:
        from pitg.runners.tmux import TmuxHost

        rec = _TmuxRecorder({"display-message": (0, "0\n", "")})
        with patch("pitg.runners.tmux.subprocess.run", rec):
            TmuxHost().send_text("pi-tg-1", "line one\r\nline two")

        argv, kwargs = rec.call("load-buffer")
        self.assertEqual(argv[-1], "-")
        self.assertEqual(kwargs.get("input"), "line one\nline two")
        paste, _ = rec.call("paste-buffer")
        self.assertIn("-p", paste)
        self.assertEqual(rec.verbs()[-1], "send-keys")
        self.assertNotIn("-l", rec.calls[-1][0])

    def test_multiline_sends_use_private_buffers(self) -> None:
        from pitg.runners.tmux import TmuxHost

        rec = _TmuxRecorder({"display-message": (0, "0\n", "")})
        host = TmuxHost()
        with patch("pitg.runners.tmux.subprocess.run", rec):
            host.send_text("pi-tg-1", "chat 1 text\nline2")
            host.send_text("pi-tg-2", "chat 2 text\nline2")

        def buffer_of(argv):
            return argv[argv.index("-b") + 1]

        loads = [buffer_of(argv) for argv, _ in rec.calls if argv[1] == "load-buffer"]
        pastes = [(buffer_of(argv), argv[-1]) for argv, _ in rec.calls if argv[1] == "paste-buffer"]
        self.assertEqual(len(set(loads)), 2)
        self.assertEqual([b for b, _ in pastes], loads)
        self.assertEqual([t for _, t in pastes], ["=pi-tg-1:", "=pi-tg-2:"])
        self.assertTrue(loads[0].startswith("pitg-pi-tg-1-"))
        self.assertTrue(loads[1].startswith("pitg-pi-tg-2-"))

    def test_failed_paste_drops_its_buffer(self) -> None:
        from pitg.runners.tmux import TmuxError, TmuxHost

        rec = _TmuxRecorder({"display-message": (0, "0\n", ""), "paste-buffer": (1, "", "can't find pane")})
        with patch("pitg.runners.tmux.subprocess.run", rec):
            with self.assertRaises(TmuxError):
                TmuxHost().send_text("pi-tg-1", "a\nb")

        load, _ = rec.call("load-buffer")
        drop, _ = rec.call("delete-buffer")
        self.assertEqual(drop[drop.index("-b") + 1], load[load.index("-b") + 1])

    def test_send_text_cancels_copy_mode(self) -> None:
        from pitg.runners.tmux import TmuxHost

        rec = _TmuxRecorder({"display-message": (0, "1\n", "")})
        with patch("pitg.runners.tmux.subprocess.run", rec):
            TmuxHost().send_text("pi-tg-1", "x")

        self.assertEqual(rec.calls[1][0], ["tmux", "send-keys", "-t", "=pi-tg-1:", "-X", "cancel"])

    def test_send_failure_raises(self) -> None:
        from pitg.runners.tmux import TmuxError, TmuxHost

        rec = _TmuxRecorder({"send-keys": (1, "", "can't find pane"), "display-message": (1, "", "")})
        with patch("pitg.runners.tmux.subprocess.run", rec):
            with self.assertRaises(TmuxError):
                TmuxHost().send_text("pi-tg-1", "x")

    def test_capture_returns_last_non_blank_lines(self) -> None:
        from pitg.runners.tmux import TmuxHost

        screen = "a\nb\nc\n> \n\n\n\n"
        rec = _TmuxRecorder({"capture-pane": (0, screen, "")})
        with patch("pitg.runners.tmux.subprocess.run", rec):
            out = TmuxHost().capture("pi-tg-1", 2)

        self.assertEqual(out, "c\n> ")
        argv, _ = rec.call("capture-pane")
        self.assertEqual(argv, ["tmux", "capture-pane", "-p", "-J", "-t", "=pi-tg-1:", "-S", "-2"])

    def test_kill_missing_session_returns_false(self) -> None:
        from pitg.runners.tmux import TmuxHost

        rec = _TmuxRecorder({"has-session": (1, "", "")})
        with patch("pitg.runners.tmux.subprocess.run", rec):
            self.assertFalse(TmuxHost().kill_session("pi-tg-1"))
        self.assertNotIn("kill-session", rec.verbs())

    def test_list_sessions_filters_prefix(self) -> None:
        from pitg.runners.tmux import TmuxHost

        rec = _TmuxRecorder({"list-sessions": (0, "pi-tg-1\nwork\npi-tg-2-5\n", "")})
        with patch("pitg.runners.tmux.subprocess.run", rec):
            self.assertEqual(TmuxHost().list_sessions("pi-tg-"), ["pi-tg-1", "pi-tg-2-5"])

        with patch("pitg.runners.tmux.subprocess.run", _TmuxRecorder({"list-sessions": (1, "", "no server running")})):
            self.assertEqual(TmuxHost().list_sessions("pi-tg-"), [])


if __name__ == "__main__":
    unittest.main()
