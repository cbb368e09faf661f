"""
Command Line Interface for the evolving app.
"""

import asyncio
from typing import Optional

import typer
import uvicorn
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..config import get_settings
from ..db.base import get_session_local, init_database
from ..db.services import ProgramService
from ..generation import get_generator
from ..log_config import configure_logging
from ..programs.coordinator import CycleStatus, IterationCoordinator
from ..programs.store import ProgramStore

app = typer.Typer(help="Evolving App - recognizer, pixel canvas and program pipeline")
console = Console()


@app.command()
def serve(
    port: Optional[int] = typer.Option(None, help="Port to run the API server on"),
    host: Optional[str] = typer.Option(None, help="Host to bind the server to"),
    dev: bool = typer.Option(False, help="Run in development mode (auto reload)"),
):
    """Start the API server with the task queue and the coordinator."""
    settings = get_settings()
    console.print(Panel.fit("Starting Evolving App", style="bold blue"))
    uvicorn.run(
        "evolving_app.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=dev,
        workers=1,
    )


@app.command("init-db")
def init_db():
    """Create any missing database tables."""
    configure_logging(get_settings())
    init_database()
    console.print("✅ Database initialized")


@app.command()
def status(limit: int = typer.Option(5, help="Number of recent iterations to show")):
    """Show the stored program state and recent iterations."""
    db = get_session_local()()
    try:
        service = ProgramService(db)
        state = service.get_state()
        codes = service.get_codes(limit=limit)

        if state is None:
            console.print("❌ Program state not initialized")
        else:
            console.print(
                Panel.fit(
                    f"Phase: [bold]{state.state}[/bold]\n"
                    f"Current iteration: {state.current_iteration_id or '-'}",
                    title="Program",
                )
            )

        table = Table(title="Recent iterations")
        table.add_column("ID", style="cyan")
        table.add_column("Created", style="magenta")
        table.add_column("Code size", justify="right")
        for code in codes:
            marker = " *" if state and code.id == state.current_iteration_id else ""
            table.add_row(
                f"{code.id}{marker}",
                code.created_at.isoformat() if code.created_at else "-",
                str(len(code.code or "")),
            )
        console.print(table)
    finally:
        db.close()


@app.command()
def cycle(
    backend: Optional[str] = typer.Option(None, help="Generator backend (anthropic or stub)"),
):
    """Run one coordinator cycle for the stored phase and print the report."""
    settings = get_settings()
    if backend:
        settings = settings.model_copy(update={"generator_backend": backend})
    configure_logging(settings)
    init_database()

    async def run_cycle():
        generator = get_generator(settings)
        coordinator = IterationCoordinator.from_settings(
            ProgramStore(get_session_local()), generator, settings
        )
        try:
            await coordinator.resume()
            return await coordinator.run_once()
        finally:
            await generator.close()

    report = asyncio.run(run_cycle())

    style = {
        CycleStatus.PUBLISHED: "green",
        CycleStatus.SKIPPED: "yellow",
        CycleStatus.FAILED: "red",
    }[report.status]
    table = Table(title=f"{report.kind.value} cycle")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style=style)
    for key, value in report.to_dict().items():
        table.add_row(key, "-" if value is None else str(value))
    console.print(table)

    if report.status == CycleStatus.FAILED:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
