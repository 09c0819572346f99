"""Rich console renderer for the stdout stream.

The renderer formats an event dict with Rich styles, captures the output
and returns it as a string, so the stream's handler stays in charge of
actually writing to the terminal.
"""

import sys
from typing import Any

from rich.console import Console
from rich.text import Text

from .config import ConsoleMode

# Fields shown in the header line, never repeated as extras
_HEADER_FIELDS = ("event", "level", "timestamp", "name", "hostname", "pid")


class PrettyConsoleRenderer:
    """Structlog renderer producing human-friendly console lines."""

    def __init__(
        self,
        mode: ConsoleMode | str = ConsoleMode.SHORT,
        colors: bool | None = None,
    ) -> None:
        """Initialize the console renderer.

        Args:
        ----
            mode: One of short, long or simple
            colors: Emit ANSI colors; defaults to whether stdout is a tty

        """
        self.mode = ConsoleMode(mode)
        if self.mode is ConsoleMode.JSON:
            raise ValueError("json mode is rendered by JSONRenderer")
        if colors is None:
            colors = sys.stdout.isatty()
        self.console = Console(
            color_system="auto" if colors else None,
            force_terminal=colors,
            highlight=False,
            soft_wrap=True,
        )

        self.level_styles = {
            "trace": "dim",
            "debug": "dim cyan",
            "info": "green",
            "warning": "yellow",
            "error": "red bold",
            "fatal": "red bold reverse",
            "critical": "red bold reverse",
        }

    def __call__(self, _: Any, __: str, event_dict: dict[str, Any]) -> str:
        """Render the event dict to a string."""
        event_dict = dict(event_dict)
        with self.console.capture() as capture:
            if self.mode is ConsoleMode.SIMPLE:
                self._render_simple(event_dict)
            elif self.mode is ConsoleMode.SHORT:
                self._render_short(event_dict)
            else:
                self._render_long(event_dict)
        return capture.get().rstrip("\n")

    def _level(self, event_dict: dict[str, Any]) -> Text:
        level = str(event_dict.get("level", "info")).lower()
        style = self.level_styles.get(level, "white")
        return Text(f"{level.upper():>5}", style=style)

    def _render_simple(self, event_dict: dict[str, Any]) -> None:
        line = Text.assemble(self._level(event_dict), ": ", str(event_dict.get("event", "")))
        self.console.print(line)

    def _header(self, event_dict: dict[str, Any], with_host: bool) -> Text:
        line = Text()
        timestamp = event_dict.get("timestamp")
        if timestamp:
            line.append(f"[{timestamp}] ", style="dim")
        line.append_text(self._level(event_dict))
        line.append(": ")
        name = event_dict.get("name")
        if name:
            origin = str(name)
            if with_host:
                origin = f"{name}/{event_dict.get('pid')} on {event_dict.get('hostname')}"
            line.append(f"{origin}: ", style="dim blue")
        line.append(str(event_dict.get("event", "")), style="bold")
        return line

    def _render_short(self, event_dict: dict[str, Any]) -> None:
        line = self._header(event_dict, with_host=False)

        err = event_dict.get("err")
        if isinstance(err, dict):
            line.append(f" {err.get('name')}: {err.get('message')}", style="red")

        for key, value in event_dict.items():
            if key in _HEADER_FIELDS or key == "err":
                continue
            line.append(f" {key}=", style="dim cyan")
            line.append(str(value))

        self.console.print(line)

    def _render_long(self, event_dict: dict[str, Any]) -> None:
        self.console.print(self._header(event_dict, with_host=True))

        req = event_dict.get("req")
        if isinstance(req, dict):
            self.console.print(
                Text.assemble(
                    "  ", (str(req.get("method") or "?"), "blue"), " ",
                    str(req.get("original_url") or req.get("url") or "?"),
                )
            )

        res = event_dict.get("res")
        if isinstance(res, dict):
            status_code = res.get("status_code")
            line = Text("  ")
            line.append(str(status_code), style=self._status_style(status_code))
            if res.get("response_time") is not None:
                line.append(f" {res['response_time']}ms", style="dim")
            self.console.print(line)

        extras = {
            k: v for k, v in event_dict.items()
            if k not in _HEADER_FIELDS and k != "err"
        }
        self._render_extra_fields(extras, indent=2)

        err = event_dict.get("err")
        if isinstance(err, dict):
            self.console.print(
                Text(f"  {err.get('name')}: {err.get('message')}", style="red")
            )
            if err.get("stack") and not err.get("hide_stack"):
                self.console.print(Text(str(err["stack"]).rstrip("\n"), style="dim red"))
        elif err is not None:
            self.console.print(Text(f"  {err}", style="red"))

    @staticmethod
    def _status_style(status_code: Any) -> str:
        if not isinstance(status_code, int):
            return "dim"
        if status_code < 300:
            return "green"
        if status_code < 400:
            return "yellow"
        if status_code < 500:
            return "orange1"
        return "red"

    def _render_extra_fields(self, fields: dict[str, Any], indent: int = 0) -> None:
        """Render additional fields, one per line."""
        indent_str = " " * indent
        for key, value in fields.items():
            if isinstance(value, dict):
                self.console.print(Text(f"{indent_str}{key}:", style="dim cyan"))
                self._render_extra_fields(value, indent + 2)
            else:
                line = Text(f"{indent_str}{key}: ", style="dim cyan")
                line.append(str(value))
                self.console.print(line)
