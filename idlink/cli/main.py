"""Main CLI application using Cyclopts."""

import asyncio

import cyclopts
from rich.console import Console

from idlink.config import Config, configure_logging
from idlink.infrastructure.persistence.database import create_db_engine, create_tables

app = cyclopts.App(
    name="idlink",
    help="idlink - federated identity resolution and account provisioning",
)

console = Console()


@app.command
def serve(
    host: str = "0.0.0.0",
    port: int = 8000,
    reload: bool = False,
) -> None:
    """Run the HTTP server in the foreground.

    Args:
        host: Host to bind to.
        port: Port to listen on.
        reload: Restart on code changes (development only).
    """
    import uvicorn

    console.print(f"[green]✓[/green] Serving idlink on http://{host}:{port}")
    uvicorn.run(
        "idlink.application.api.rest.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


@app.command(name="init-db")
def init_db() -> None:
    """Create any missing tables in the configured database.

    Use `alembic upgrade head` for managed PostgreSQL deployments.
    """
    config = Config()  # type: ignore[call-arg]
    configure_logging(config.logging)

    async def _run() -> None:
        engine = create_db_engine(config.database)
        try:
            await create_tables(engine)
        finally:
            await engine.dispose()

    asyncio.run(_run())
    console.print(f"[green]✓[/green] Database ready: [dim]{config.database.url}[/dim]")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
