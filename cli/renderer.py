"""
Terminal rendering of generation events with rich.
"""

import json
from typing import Any, Dict, Optional

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel

from cli.config import CLIConfig


class EventRenderer:
    """Renders stream events in the terminal with rich formatting"""

    def __init__(self, console: Console, config: CLIConfig):
        self.console = console
        self.config = config
        self.sandbox_id: Optional[str] = None
        self.preview_url: Optional[str] = None
        self.failed = False

    def render(self, event: Dict[str, Any]) -> None:
        if self.config.output_format == "json":
            self.console.print_json(json.dumps(event))
            self._track(event)
            return

        handler = getattr(self, f"_render_{event.get('type')}", None)
        if handler is None:
            if self.config.verbose:
                self.console.print(f"[dim]{event}[/dim]")
            return
        handler(event)
        self._track(event)

    def _track(self, event: Dict[str, Any]) -> None:
        if event.get("type") == "complete":
            self.sandbox_id = event.get("sandboxId")
            self.preview_url = event.get("previewUrl")
        elif event.get("type") == "error" and event.get("fatal"):
            self.failed = True

    def _render_agent_message(self, event: Dict[str, Any]) -> None:
        self.console.print(Markdown(event.get("text", "")))

    def _render_tool_invocation(self, event: Dict[str, Any]) -> None:
        tool_input = event.get("input") or {}
        target = tool_input.get("file_path") or tool_input.get("path") or tool_input.get("command") or ""
        self.console.print(f"[cyan]⚙ {event.get('name', 'tool')}[/cyan] [dim]{target}[/dim]")

    def _render_progress(self, event: Dict[str, Any]) -> None:
        self.console.print(f"[dim]{event.get('text', '')}[/dim]")

    def _render_error(self, event: Dict[str, Any]) -> None:
        if event.get("fatal"):
            self.render_error(event.get("text", "Generation failed"))
        else:
            self.console.print(f"[yellow]⚠️  {event.get('text', '')}[/yellow]")

    def _render_complete(self, event: Dict[str, Any]) -> None:
        self.console.print(Panel(
            f"[bold]Preview:[/bold] {event.get('previewUrl')}\n"
            f"[bold]Sandbox:[/bold] {event.get('sandboxId') or '-'}",
            title="[green]Generation complete[/green]",
            border_style="green"
        ))

    def render_error(self, message: str, details: Optional[str] = None) -> None:
        body = f"[bold red]{message}[/bold red]"
        if details:
            body += f"\n\n[dim]{details}[/dim]"
        self.console.print(Panel(body, title="[red]Error[/red]", border_style="red"))

    def render_success(self, message: str) -> None:
        self.console.print(f"[green]✔ {message}[/green]")

    def render_info(self, message: str) -> None:
        self.console.print(f"[blue]• {message}[/blue]")
