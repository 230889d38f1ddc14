#!/usr/bin/env python3
"""Adaptive progress demo.

Demonstrates:
1. A countdown driven by the learned estimate for a key
2. Learning from each successful run (run it a few times)
3. Failed runs leaving the estimate untouched

Usage:
    python scripts/demo.py --duration 7
    python scripts/demo.py --key eta-generate-zip --default 20 --duration 12
    python scripts/demo.py --duration 3 --fail
    python scripts/demo.py --clear
"""

import argparse
import asyncio

from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, TextColumn

from adaptive_progress.core.logging import configure_logging
from adaptive_progress.services.progress import (
    ProgressState,
    create_progress_controller,
    display_percent,
    format_remaining_verbose,
    get_estimate_store,
)

console = Console()


async def run(args: argparse.Namespace) -> None:
    store = get_estimate_store()

    if args.clear:
        await store.clear(args.key)
        console.print(f"[yellow]Cleared learned estimate for {args.key}[/yellow]")
        return

    controller = create_progress_controller(store=store)

    async def fake_backend_job() -> str:
        await asyncio.sleep(args.duration)
        if args.fail:
            raise RuntimeError("network timeout")
        return "archive.zip"

    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.percentage:>3.0f}%"),
        console=console,
    ) as progress:
        bar = progress.add_task("Waiting...", total=100)

        def render(state: ProgressState) -> None:
            label = (
                format_remaining_verbose(state.remaining_ms)
                if state.remaining_ms is not None
                else "done"
            )
            progress.update(
                bar,
                completed=display_percent(state.percent),
                description=f"Generating ({label} left)",
            )

        controller.subscribe(render)

        try:
            result = await controller.run_with_estimate(
                args.key, args.default * 1000, fake_backend_job
            )
        except RuntimeError as e:
            console.print(f"[red]Task failed: {e}[/red]")
        else:
            console.print(f"[green]Task finished: {result}[/green]")

    learned = await store.read(args.key, args.default * 1000)
    console.print(f"Next estimate for [bold]{args.key}[/bold]: {learned / 1000:.1f}s")


def main():
    parser = argparse.ArgumentParser(description="Adaptive Progress Demo")
    parser.add_argument("--key", default="eta-demo", help="Estimate key")
    parser.add_argument(
        "--default", type=float, default=10.0, help="Default estimate (seconds)"
    )
    parser.add_argument(
        "--duration", type=float, default=6.0, help="How long the fake job takes (seconds)"
    )
    parser.add_argument("--fail", action="store_true", help="Make the fake job fail")
    parser.add_argument("--clear", action="store_true", help="Forget the learned estimate")

    args = parser.parse_args()

    configure_logging()
    console.print(Panel.fit(
        "[bold blue]Adaptive Progress[/bold blue]\n"
        "Countdown from a learned estimate, reconciled on completion",
        border_style="blue",
    ))

    asyncio.run(run(args))


if __name__ == "__main__":
    main()
