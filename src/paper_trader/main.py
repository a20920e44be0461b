"""Main module for the paper trading service."""
import logging
import subprocess
import sys
from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import FastAPI

from paper_trader.container import Container
from paper_trader.db.sessions import DATABASE_URL, init_db
from paper_trader.routers import portfolio_router, quotes_router, trade_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    """Build the container and services at startup; close providers on shutdown."""
    container = Container()
    container.config.database_url.from_value(DATABASE_URL)
    engine = container.engine()
    init_db(engine)

    fastapi_app.state.container = container
    fastapi_app.state.trade_service = container.trade_service()
    fastapi_app.state.portfolio_service = container.portfolio_service()
    fastapi_app.state.quote_service = container.quote_service()

    yield

    # Close provider resources (e.g. httpx clients)
    for provider in (container.stocks_provider(), container.crypto_provider()):
        try:
            await provider.close()
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Error closing provider %s: %s", type(provider).__name__, exc)
    engine.dispose()


app = FastAPI(
    title="Paper Trader",
    description="Virtual-balance trading of stocks and crypto at live prices",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(trade_router)
app.include_router(portfolio_router)
app.include_router(quotes_router)


@app.get("/")
def health():
    """Return health check status."""
    return {"status": "ok"}


def run():
    """Run the server (uvicorn). Use for `poetry run start`."""
    uvicorn.run("paper_trader.main:app", host="127.0.0.1", port=8001)


def run_dev():
    """Run the development server with Postgres running via Docker."""
    project_root = Path(__file__).resolve().parent.parent.parent
    try:
        subprocess.run(
            ["docker", "compose", "up", "-d", "postgres"],
            cwd=project_root,
            capture_output=True,
            text=True,
            check=True,
        )
    except subprocess.CalledProcessError as e:
        print("Failed to start Postgres:", e.stderr or e.stdout, file=sys.stderr)
        sys.exit(1)
    uvicorn.run("paper_trader.main:app", host="0.0.0.0", port=8000, reload=True)
