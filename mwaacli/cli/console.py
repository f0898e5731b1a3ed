"""Terminal presentation for the CLI: colours, prompts and JSON output."""

from __future__ import annotations

import json
import os
import sys
from typing import Any, Sequence, TextIO

import questionary


# ANSI Escape Codes for Colors
class Color:
    BLUE = "\033[94m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    CYAN = "\033[96m"
    BOLD = "\033[1m"
    END = "\033[0m"


class Console:
    def __init__(
        self,
        out: TextIO | None = None,
        err: TextIO | None = None,
        color: bool | None = None,
        interactive: bool | None = None,
    ) -> None:
        self.out = out or sys.stdout
        self.err = err or sys.stderr
        if color is None:
            color = "NO_COLOR" not in os.environ and self.out.isatty()
        self.color = color
        if interactive is None:
            interactive = sys.stdin.isatty()
        self.interactive = interactive

    def _paint(self, code: str, msg: str) -> str:
        if not self.color:
            return msg
        return f"{code}{msg}{Color.END}"

    def info(self, msg: str) -> None:
        print(self._paint(Color.CYAN, f"ℹ {msg}"), file=self.out)

    def success(self, msg: str) -> None:
        print(self._paint(Color.GREEN, f"✅ {msg}"), file=self.out)

    def warning(self, msg: str) -> None:
        print(self._paint(Color.YELLOW, f"⚠️ {msg}"), file=self.out)

    def error(self, msg: str) -> None:
        print(self._paint(Color.RED, f"❌ {msg}"), file=self.err)

    def step(self, msg: str) -> None:
        if not self.color:
            print(f"➜ {msg}", file=self.out)
            return
        print(f"{Color.BLUE}➜ {Color.BOLD}{msg}{Color.END}", file=self.out)

    def highlight(self, msg: Any) -> str:
        return self._paint(Color.BOLD, str(msg))

    def echo(self, msg: str = "") -> None:
        print(msg, file=self.out)

    def json(self, value: Any) -> None:
        print(json.dumps(value, indent=2, default=str), file=self.out)

    def confirm(self, message: str) -> bool:
        if not self.interactive:
            return False
        return bool(questionary.confirm(message, default=False).ask())

    def select(self, message: str, choices: Sequence[str]) -> str | None:
        """Ask the user to pick one of choices. None when cancelled or non-interactive."""
        if not self.interactive:
            return None
        return questionary.select(
            message, choices=list(choices), use_search_filter=True, use_jk_keys=False
        ).ask()
