from __future__ import annotations

import logging
import shlex
import subprocess
import uuid
from pathlib import Path
from typing import List, Optional, Tuple

from .host import SessionHostError

logger = logging.getLogger("pitg.tmux")


class TmuxError(SessionHostError):
    def __init__(self, op: str, code: int, stderr: str):
        self.op = op
        self.code = int(code)
        self.stderr = (stderr or "").strip()
        super().__init__(f"tmux {op} failed (exit {self.code}): {self.stderr or 'no output'}")


def _run_tmux(
    args: List[str],
    *,
    timeout_s: float = 3.0,
    input_text: Optional[str] = None,
    tmux_bin: str = "tmux",
) -> Tuple[int, str, str]:
    try:
        p = subprocess.run(
            [tmux_bin, *args],
            input=input_text,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            timeout=timeout_s,
            check=False,
        )
        return int(p.returncode), (p.stdout or ""), (p.stderr or "")
    except subprocess.TimeoutExpired:
        return 124, "", "tmux timeout"
    except OSError as e:
        # tmux binary missing or not executable.
        return 127, "", str(e)


def session_target(name: str) -> str:
    # "=" forces an exact match; plain names match by prefix ("pi-tg-1" would hit "pi-tg-1-7").
    return f"={name}"


def pane_target(name: str) -> str:
    return f"={name}:"


def _tail_lines(text: str, lines: int) -> str:
    rows = (text or "").splitlines()
    while rows and not rows[-1].strip():
        rows.pop()
    if lines > 0:
        rows = rows[-lines:]
    return "\n".join(rows)


class TmuxHost:
    """Session host backed by the tmux CLI.

    Every call is a bounded subprocess (`timeout_s`); a hung tmux counts as a
    failed call rather than stalling the caller.
    """

    def __init__(
        self,
        *,
        timeout_s: float = 3.0,
        width: int = 200,
        height: int = 50,
        tmux_bin: str = "tmux",
    ):
        self.timeout_s = float(timeout_s)
        self.width = int(width)
        self.height = int(height)
        self.tmux_bin = tmux_bin

    def _run(self, args: List[str], *, input_text: Optional[str] = None) -> Tuple[int, str, str]:
        return _run_tmux(args, timeout_s=self.timeout_s, input_text=input_text, tmux_bin=self.tmux_bin)

    def has_session(self, name: str) -> bool:
        code, _, _ = self._run(["has-session", "-t", session_target(name)])
        return code == 0

    def new_session(self, name: str, *, command: List[str], cwd: Path) -> None:
        cwd_path = Path(cwd).expanduser()
        if not cwd_path.is_dir():
            logger.warning("working directory %s missing, using home", cwd_path, extra={"session": name})
            cwd_path = Path.home()

        args = [
            "new-session",
            "-d",
            "-s",
            name,
            "-x",
            str(self.width),
            "-y",
            str(self.height),
            "-c",
            str(cwd_path),
        ]
        cmd = [c for c in (command or []) if isinstance(c, str) and c.strip()]
        if cmd:
            args.append(" ".join(shlex.quote(x) for x in cmd))

        code, _, err = self._run(args)
        if code != 0:
            raise TmuxError("new-session", code, err)

    def _cancel_copy_mode(self, pane: str) -> None:
        code, out, _ = self._run(["display-message", "-p", "-t", pane, "#{pane_in_mode}"])
        if code == 0 and (out or "").strip() in ("1", "on", "yes", "true"):
            self._run(["send-keys", "-t", pane, "-X", "cancel"])

    def _paste(self, name: str, text: str) -> None:
        pane = pane_target(name)
        # Buffers are server-wide; a per-call name keeps concurrent sends to different sessions apart.
        buf = f"pitg-{name}-{uuid.uuid4().hex}"
        code, _, err = self._run(["load-buffer", "-b", buf, "-"], input_text=text)
        if code != 0:
            raise TmuxError("load-buffer", code, err)
        # -p: bracketed paste so embedded newlines do not submit early; -d: drop the buffer.
        code, _, err = self._run(["paste-buffer", "-p", "-d", "-b", buf, "-t", pane])
        if code != 0:
            self._run(["delete-buffer", "-b", buf])
            raise TmuxError("paste-buffer", code, err)

    def send_text(self, name: str, text: str) -> None:
        pane = pane_target(name)
        self._cancel_copy_mode(pane)

        if "\n" in text or "\r" in text:
            self._paste(name, text.replace("\r\n", "\n").replace("\r", "\n"))
        elif text:
            # -l sends the string as literal keys, so quotes and `$` are never
            # interpreted; "--" keeps a leading "-" from being read as a flag.
            code, _, err = self._run(["send-keys", "-t", pane, "-l", "--", text])
            if code != 0:
                raise TmuxError("send-keys", code, err)

        code, _, err = self._run(["send-keys", "-t", pane, "Enter"])
        if code != 0:
            raise TmuxError("send-keys", code, err)

    def capture(self, name: str, lines: int) -> str:
        n = max(1, int(lines))
        code, out, err = self._run(["capture-pane", "-p", "-J", "-t", pane_target(name), "-S", f"-{n}"])
        if code != 0:
            raise TmuxError("capture-pane", code, err)
        return _tail_lines(out, n)

    def kill_session(self, name: str) -> bool:
        if not self.has_session(name):
            return False
        code, _, err = self._run(["kill-session", "-t", session_target(name)])
        if code == 0:
            return True
        if not self.has_session(name):
            # Went away on its own between the existence check and the kill.
            return False
        raise TmuxError("kill-session", code, err)

    def list_sessions(self, prefix: str = "") -> List[str]:
        code, out, _ = self._run(["list-sessions", "-F", "#{session_name}"])
        if code != 0:
            # "no server running" is the common case here.
            return []
        names = [ln.strip() for ln in (out or "").splitlines() if ln.strip()]
        if prefix:
            names = [n for n in names if n.startswith(prefix)]
        return names
