# display.py
# All terminal output for the page agent.
#
# This module owns presentation entirely. The loop, tools and solver never
# format strings; they call named functions here. Swap this file to change
# the entire UI.
#
# Colour language:
#   cyan    : scaffolding / routing events
#   blue    : model calls and streamed text
#   magenta : tool calls and results
#   yellow  : challenge-solving loop
#   green   : success / turn complete
#   red     : failures, unavailable backend

import json
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from page_agent.models import (
    ChallengeDetection,
    ChallengeOutcome,
    GridJudgment,
    ToolCall,
    ToolDescriptor,
    ToolResult,
)

console = Console()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _label(tag: str, color: str) -> Text:
    t = Text()
    t.append(f" {tag} ", style=f"bold white on {color}")
    return t


def _mono(value: str, max_len: int = 120) -> str:
    if len(value) > max_len:
        return value[:max_len] + "…"
    return value


def _dump(value: Any) -> str:
    try:
        return json.dumps(value, default=str)
    except (TypeError, ValueError):
        return str(value)


# ---------------------------------------------------------------------------
# Session setup
# ---------------------------------------------------------------------------


def banner(provider: str, model: str, has_credentials: bool) -> None:
    status = "[green]configured[/green]" if has_credentials else "[red]missing API key[/red]"
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]Page Agent[/bold cyan]\n"
            "[dim]Tool-augmented browsing assistant[/dim]\n\n"
            f"[dim]Provider :[/dim] [white]{provider}[/white]\n"
            f"[dim]Model    :[/dim] [white]{model}[/white]\n"
            f"[dim]Backend  :[/dim] {status}",
            border_style="cyan",
            padding=(1, 4),
        )
    )


def backend_unavailable(key_name: str) -> None:
    console.print(
        Panel(
            f"[bold red]{key_name} not found in environment variables.[/bold red]\n"
            "[dim]Please add your API key to the .env file in the project root.[/dim]",
            title=_label("BACKEND UNAVAILABLE ✗", "red"),
            border_style="red",
            padding=(0, 2),
        )
    )


def registry_built(origin_counts: dict[str, int], total: int) -> None:
    parts = ", ".join(f"{origin}={count}" for origin, count in origin_counts.items())
    console.print(
        _label("REGISTRY", "cyan"),
        f"[cyan] {total} tool(s) registered[/cyan] [dim]({parts})[/dim]",
    )


def remote_catalog_failed(source: str, error: BaseException) -> None:
    console.print(
        _label("REGISTRY", "red"),
        f"[red] Could not load tools from {source}:[/red] [dim]{error}[/dim]",
    )


def context_capture_failed(what: str, error: BaseException) -> None:
    console.print(f"  [dim red]↳ Failed to capture {what}: {error}[/dim red]")


def tool_table(descriptors: list[ToolDescriptor]) -> None:
    table = Table(
        box=box.SIMPLE_HEAVY,
        border_style="cyan",
        show_header=True,
        header_style="bold cyan",
        padding=(0, 1),
    )
    table.add_column("Tool", style="bold white")
    table.add_column("Description", style="dim white")
    for descriptor in descriptors:
        table.add_row(descriptor.name, _mono(descriptor.description, 80))
    console.print(table)


# ---------------------------------------------------------------------------
# Turn / step loop
# ---------------------------------------------------------------------------


def prompt_received(prompt: str) -> None:
    console.print()
    console.print(Rule("[cyan]NEW TURN[/cyan]", style="cyan"))
    console.print(
        Panel(
            f"[white]{prompt}[/white]",
            title=_label("USER", "cyan"),
            border_style="cyan",
            padding=(0, 2),
        )
    )


def step_start(index: int, max_steps: int) -> None:
    console.print()
    console.print(f"[bold blue]  STEP [{index}/{max_steps}][/bold blue]  [dim]→ streaming from model…[/dim]")


def text_delta(text: str) -> None:
    console.print(text, end="", style="blue", markup=False, highlight=False)


def tool_call(call: ToolCall) -> None:
    console.print()
    console.print(
        f"  [magenta]Tool[/magenta]     [bold white]{call.tool_name}[/bold white]"
        f"  [dim]{_mono(_dump(call.arguments), 160)}[/dim]"
    )


def tool_result(result: ToolResult) -> None:
    if result.success:
        console.print(
            f"  [magenta]Result[/magenta]   [green]✓[/green] [white]{_mono(_dump(result.payload), 140)}[/white]"
        )
    else:
        console.print(f"  [magenta]Result[/magenta]   [red]✗ {_mono(result.error or 'failed', 140)}[/red]")


def backend_error(category: str, message: str, detail: str = "") -> None:
    console.print()
    console.print(
        Panel(
            f"[bold red]{message}[/bold red]" + (f"\n[dim]{_mono(detail, 300)}[/dim]" if detail else ""),
            title=_label(f"BACKEND ERROR: {category.upper()}", "red"),
            border_style="red",
            padding=(0, 2),
        )
    )


def step_ceiling_reached(max_steps: int) -> None:
    console.print()
    console.print(
        _label("STEP CEILING", "yellow"),
        f"[yellow] Reached {max_steps} step(s); returning what has accumulated.[/yellow]",
    )


def turn_complete(text: str, streamed: bool = False) -> None:
    """Close a turn. Text that already streamed is not printed again."""
    console.print()
    if streamed:
        console.print(Rule(style="green"))
        console.print()
        return
    console.print(
        Panel(
            Text(text or "(no text)", style="white"),
            title=_label("ASSISTANT", "green"),
            border_style="green",
            padding=(1, 2),
        )
    )
    console.print()


# ---------------------------------------------------------------------------
# Challenge solving
# ---------------------------------------------------------------------------


def challenge_detected(detection: ChallengeDetection) -> None:
    provider = f" ({detection.provider})" if detection.provider else ""
    console.print(
        _label("CHALLENGE", "yellow"),
        f"[yellow] Detected {detection.type}{provider} challenge[/yellow]",
    )


def challenge_acknowledge(clicked: bool) -> None:
    mark = "[green]✓[/green]" if clicked else "[dim]no checkbox found[/dim]"
    console.print(f"  [yellow]↳ Acknowledge checkbox[/yellow] {mark}")


def challenge_iteration(iteration: int, max_iterations: int) -> None:
    console.print(f"  [yellow]↳ Solving round {iteration}/{max_iterations}…[/yellow]")


def challenge_judgment(judgment: GridJudgment) -> None:
    console.print(
        f"  [dim yellow]  prompt={_mono(judgment.prompt, 80)!r} grid={judgment.grid_size} "
        f"selected={judgment.selected_images}[/dim yellow]"
    )


def challenge_outcome(outcome: ChallengeOutcome) -> None:
    color = "green" if outcome.success else "red"
    console.print(
        _label(f"CHALLENGE: {outcome.status.upper()}", color),
        f"[{color}] {outcome.message}[/{color}]",
    )


def challenge_error(stage: str, error: BaseException) -> None:
    console.print(f"  [red]↳ Challenge {stage} failed:[/red] [dim]{error}[/dim]")


# ---------------------------------------------------------------------------
# Shortcuts
# ---------------------------------------------------------------------------


def shortcut_triggered(name: str, accelerator: str) -> None:
    console.print()
    console.print(_label("SHORTCUT", "cyan"), f"[cyan] Executing {name!r} ({accelerator})[/cyan]")


def shortcut_rejected(accelerator: str, reason: str) -> None:
    console.print(f"  [red]↳ Shortcut {accelerator!r} rejected:[/red] [dim]{reason}[/dim]")


def shortcut_code_failed(name: str, error: BaseException) -> None:
    console.print(f"  [red]↳ Code for shortcut {name!r} failed:[/red] [dim]{error}[/dim]")


def no_active_page(context: str) -> None:
    console.print(f"  [dim]↳ No active page for {context}[/dim]")


# ---------------------------------------------------------------------------
# Listener
# ---------------------------------------------------------------------------


class ConsoleListener:
    """Outbound event surface that renders a turn on the terminal as it streams."""

    def __init__(self) -> None:
        self._streamed = False

    def on_text_delta(self, text: str) -> None:
        self._streamed = True
        text_delta(text)

    def on_tool_call(self, call: ToolCall) -> None:
        tool_call(call)

    def on_tool_result(self, result: ToolResult) -> None:
        tool_result(result)

    def on_error(self, category: str, message: str, detail: str = "") -> None:
        backend_error(category, message, detail)

    def on_turn_complete(self, text: str) -> None:
        turn_complete(text, streamed=self._streamed)
        self._streamed = False
