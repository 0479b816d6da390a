import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from transitmap.config import HTTP_TIMEOUT, ORACLE_BASE_URL, OTP_BASE_URL
from transitmap.position_oracle import HttpPositionOracle
from transitmap.route_solver import OtpRouteSolver

logger = logging.getLogger("transitmap")
logging.basicConfig(level=logging.INFO)

# Global state populated during startup
app_state: dict = {}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the shared HTTP client and the oracle/solver adapters."""
    http_client = httpx.AsyncClient(
        timeout=HTTP_TIMEOUT,
        limits=httpx.Limits(max_connections=50, max_keepalive_connections=20),
    )
    app_state["http_client"] = http_client
    app_state["oracle"] = HttpPositionOracle(ORACLE_BASE_URL, http_client)
    app_state["solver"] = OtpRouteSolver(OTP_BASE_URL, http_client)
    logger.info(f"Position oracle at {ORACLE_BASE_URL}, route solver at {OTP_BASE_URL}")

    yield

    logger.info("Shutting down...")
    await http_client.aclose()
    app_state.clear()
    logger.info("Shared HTTP client closed")


app = FastAPI(title="transitmap", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

from transitmap.routes import router  # noqa: E402

app.include_router(router, prefix="/api")
