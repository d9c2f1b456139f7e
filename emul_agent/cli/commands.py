"""CLI commands for emul."""

import asyncio
import random
import sys
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from emul_agent import __brand__, __logo__, __version__

app = typer.Typer(
    name="emul",
    help=f"{__logo__} {__brand__} - chat-triggered assistant",
    no_args_is_help=True,
)

console = Console()

DEFAULT_PROMPT = (
    "You are {nickname}, a cheerful regular in a group chat. Keep replies short and "
    "conversational. Use your tools when a request needs dice, images, web pages or "
    "torrent downloads.\n"
)


def _cli_fail(cause: str, fix: str | None = None, *, exit_code: int = 1) -> None:
    """Print a consistent CLI error block and exit."""
    console.print(f"[red]{cause}[/red]")
    if fix:
        console.print(f"[dim]Fix: {fix}[/dim]")
    raise typer.Exit(exit_code)


def _configure_logging(verbose: bool) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING")


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} {__brand__} v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(None, "--version", "-v", callback=version_callback, is_eager=True),
):
    """emul - chat-triggered assistant."""
    pass


@app.command("version")
def version_command():
    """Show emul version."""
    console.print(f"{__logo__} {__brand__} v{__version__}")


# ============================================================================
# Onboard / Setup
# ============================================================================


@app.command()
def onboard():
    """Create the default config file and system prompt."""
    from emul_agent.config.loader import get_config_path, load_config, save_config

    config_path = get_config_path()
    config = load_config()
    if config_path.exists():
        console.print(f"[green]✓[/green] Config already exists at {config_path}")
    else:
        save_config(config, config_path)
        console.print(f"[green]✓[/green] Created config at {config_path}")

    prompt_file = config.prompt_file
    if prompt_file.exists():
        console.print(f"[green]✓[/green] System prompt already exists at {prompt_file}")
    else:
        prompt_file.parent.mkdir(parents=True, exist_ok=True)
        prompt_file.write_text(DEFAULT_PROMPT.format(nickname=config.agent.nickname), encoding="utf-8")
        console.print(f"[green]✓[/green] Created system prompt at {prompt_file}")

    console.print(f"\n{__logo__} {__brand__} is ready!")
    console.print(f"\n  Ask: [cyan]emul ask \"{config.agent.nickname}: roll 2d6\"[/cyan]")


# ============================================================================
# Conversation
# ============================================================================


def _build_chatbot(config):
    from emul_agent.agent.api import Chatbot
    from emul_agent.config.loader import get_config_path
    from emul_agent.errors import ConfigError

    try:
        return Chatbot(config)
    except ConfigError as e:
        _cli_fail(
            str(e),
            f"Set gemini.apiKey in {get_config_path()} or export GEMINI_API_KEY",
        )


def _read_history(path: Path, channel: str, limit: int):
    from emul_agent.utils.helpers import parse_history_line

    if not path.exists():
        _cli_fail(f"History file not found: {path}")
    entries = [
        entry
        for line in path.read_text(encoding="utf-8").splitlines()
        if (entry := parse_history_line(line, channel)) is not None
    ]
    return entries[-limit:] if limit > 0 else []


def _print_tools_table(response) -> None:
    if not response.invoked_tools:
        return
    table = Table(title="Invoked Tools")
    table.add_column("#", justify="right")
    table.add_column("Tool", style="cyan")
    table.add_column("Arguments", style="yellow")
    for i, invocation in enumerate(response.invoked_tools, 1):
        args = ", ".join(f"{k}={v!r}" for k, v in invocation.args.items()) or "-"
        table.add_row(str(i), invocation.name, args)
    console.print(table)


@app.command()
def ask(
    message: str = typer.Argument(..., help="Message addressed to the bot"),
    speaker: str = typer.Option("user", "--speaker", "-s", help="Speaker nickname"),
    channel: str = typer.Option("#cli", "--channel", "-c", help="Channel name"),
    history: Optional[Path] = typer.Option(
        None, "--history", help="File of 'speaker: text' lines used as channel history"
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Show debug logs"),
):
    """Run one addressed conversation and print the reply."""
    from emul_agent.config.loader import load_config
    from emul_agent.errors import EmulError
    from emul_agent.utils.helpers import split_response

    _configure_logging(verbose)
    config = load_config()
    entries = (
        _read_history(history, channel, config.agent.history_lines) if history is not None else []
    )
    chatbot = _build_chatbot(config)

    try:
        response = asyncio.run(chatbot.respond(channel, speaker, message, entries, True))
    except EmulError as e:
        _cli_fail(f"Conversation failed: {e}")

    for line in split_response(response.final_text, config.channel.line_limit):
        console.print(f"{__logo__} {line}")
    _print_tools_table(response)


@app.command()
def chat(
    speaker: str = typer.Option("user", "--speaker", "-s", help="Your nickname"),
    channel: str = typer.Option("#cli", "--channel", "-c", help="Channel name"),
    verbose: bool = typer.Option(False, "--verbose", help="Show debug logs"),
):
    """Simulate a channel: every line goes through the trigger decision."""
    from prompt_toolkit import PromptSession
    from prompt_toolkit.history import FileHistory
    from prompt_toolkit.styles import Style

    from emul_agent.config.loader import load_config
    from emul_agent.utils.helpers import HistoryEntry, get_data_path, split_response

    _configure_logging(verbose)
    config = load_config()
    chatbot = _build_chatbot(config)
    nickname = config.agent.nickname

    session = PromptSession(history=FileHistory(str(get_data_path() / "cli_history")))
    style = Style.from_dict({"prompt": "bold blue"})
    log: list[HistoryEntry] = []

    console.print(f"{__logo__} Channel {channel} as {speaker} (Ctrl+C to exit)\n")

    async def run_interactive():
        while True:
            try:
                user_input = await session.prompt_async(f"{speaker}: ", style=style)
            except (KeyboardInterrupt, EOFError):
                console.print("\nGoodbye!")
                break
            if not user_input.strip():
                continue

            response = await chatbot.handle_message(channel, speaker, user_input, list(log))
            log.append(HistoryEntry(channel=channel, speaker=speaker, text=user_input))
            if response is None:
                continue

            log.append(HistoryEntry(channel=channel, speaker=nickname, text=response.final_text))
            for line in split_response(response.final_text, config.channel.line_limit):
                console.print(f"{__logo__} {nickname}: {line}")
                await asyncio.sleep(config.channel.send_delay_seconds)
            del log[: max(0, len(log) - config.agent.history_lines)]

    asyncio.run(run_interactive())


# ============================================================================
# Local tools
# ============================================================================


@app.command()
def roll(
    notation: str = typer.Argument(..., help="Dice notation such as 3d6+2"),
    seed: Optional[int] = typer.Option(None, "--seed", help="Random seed"),
):
    """Roll dice locally."""
    from emul_agent.agent.tools.dice import roll_dice
    from emul_agent.errors import ToolError

    try:
        result = roll_dice(notation, rng=random.Random(seed) if seed is not None else None)
    except ToolError as e:
        _cli_fail(str(e), "Use NdM or NdM+K, e.g. 2d20+3")
    console.print(f"🎲 {result.describe()}")


@app.command()
def simulate(
    chance: float = typer.Option(0.02, "--chance", help="Target interjection rate in (0, 1)"),
    events: int = typer.Option(10000, "--events", help="Number of events to feed"),
    seed: Optional[int] = typer.Option(None, "--seed", help="Random seed"),
):
    """Run the interjection scheduler and summarise its gaps."""
    from emul_agent.proactive.interjection import (
        InterjectionScheduler,
        gap_statistics,
        simulate_action_indices,
    )

    try:
        scheduler = InterjectionScheduler(chance, rng=random.Random(seed))
    except ValueError as e:
        _cli_fail(str(e))

    indices = simulate_action_indices(scheduler, events)
    stats = gap_statistics(indices)

    table = Table(title=f"Interjection Gaps (chance={chance}, events={events})")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Allowed gap", f"{scheduler.min_gap}..{scheduler.max_gap}")
    table.add_row("Observed rate", f"{stats['actions'] / events:.4f}" if events > 0 else "-")
    for key, value in stats.items():
        label = key.replace("_", " ").capitalize()
        table.add_row(label, f"{value:.4f}" if not float(value).is_integer() else f"{int(value)}")
    console.print(table)


if __name__ == "__main__":
    app()
