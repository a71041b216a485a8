import logging
import os
import secrets
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shielded_pool.api.routes import router
from shielded_pool.bridge.adapter import BridgeAdapter
from shielded_pool.bridge.transport import InMemoryBridgeTransport
from shielded_pool.core.config import PoolConfig
from shielded_pool.core.ledger import TokenLedger
from shielded_pool.core.pool import ShieldedPool
from shielded_pool.errors import AccumulatorFull, AdmissionError, ShieldedPoolError
from shielded_pool.zk.circuits import CircuitVariant
from shielded_pool.zk.groth16 import Groth16Verifier
from shielded_pool.zk.simulated import SimulatedProofSystem
from shielded_pool.zk.verifier import VerifierAdapter

logger = logging.getLogger("shielded_pool.api")


def build_verifier() -> tuple[VerifierAdapter, SimulatedProofSystem | None]:
    """
    Groth16 when both VERIFIER2_VKEY and VERIFIER16_VKEY point at snarkjs keys,
    otherwise the simulated system (seeded by SIMULATED_PROOF_SEED if set).
    """
    vkey2 = os.getenv("VERIFIER2_VKEY")
    vkey16 = os.getenv("VERIFIER16_VKEY")
    if vkey2 and vkey16:
        verifier = Groth16Verifier.from_files({
            CircuitVariant.TWO_INPUT: vkey2,
            CircuitVariant.SIXTEEN_INPUT: vkey16,
        })
        logger.info("Using Groth16 verification keys")
        return VerifierAdapter(verifier), None

    seed = os.getenv("SIMULATED_PROOF_SEED")
    system = SimulatedProofSystem.from_seed(seed.encode()) if seed else SimulatedProofSystem()
    logger.warning("Verification keys not set; using the simulated proof system")
    return VerifierAdapter(system), system


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))

    # Load configuration
    config = PoolConfig.from_env()
    verifier, prover = build_verifier()

    ledger = TokenLedger(config.token)
    pool = ShieldedPool(config, verifier, ledger).initialize()
    transport = InMemoryBridgeTransport(ledger, address=os.getenv("BRIDGE_ADDRESS", "omnibridge"))
    bridge = BridgeAdapter(pool, transport)

    # Attach to app state
    app.state.ledger = ledger
    app.state.pool = pool
    app.state.bridge = bridge
    app.state.transport = transport
    app.state.prover = prover
    # Shared secret the bridge presents on its deposit callback
    app.state.bridge_key = os.getenv("BRIDGE_API_KEY") or secrets.token_hex(16)

    yield


app = FastAPI(
    title="Shielded Pool API",
    description="REST API for submitting and inspecting shielded pool transactions",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routes
app.include_router(router)


@app.exception_handler(AdmissionError)
async def admission_error_handler(request: Request, exc: AdmissionError):
    return JSONResponse(status_code=409, content={"detail": str(exc), "code": exc.code})


@app.exception_handler(AccumulatorFull)
async def accumulator_full_handler(request: Request, exc: AccumulatorFull):
    return JSONResponse(status_code=503, content={"detail": str(exc), "code": exc.code})


@app.exception_handler(ShieldedPoolError)
async def pool_error_handler(request: Request, exc: ShieldedPoolError):
    return JSONResponse(status_code=400, content={"detail": str(exc), "code": exc.code})


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(
        status_code=400,
        content={"detail": str(exc)},
    )


@app.get("/health")
async def health_check():
    """Simple health check endpoint."""
    return {"status": "ok"}
