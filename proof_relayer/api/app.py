"""
Proof Relayer API — FastAPI endpoints.

Read-mostly observability surface for the relay agent:
- Agent status, stats and configuration
- Pending (deferred) proofs
- Proof ledger lookups
- Manual cycle trigger and dry-run validation
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException

from proof_relayer.agent.loop import CycleError, RelayerAgent
from proof_relayer.models.proof import ExecutionProof

logger = logging.getLogger(__name__)


def create_app(agent: RelayerAgent, run_loop: bool = False) -> FastAPI:
    """
    Create the API around an agent.

    With `run_loop`, the agent loop runs in the background for the lifetime
    of the application and is stopped on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        task: Optional[asyncio.Task] = None
        if run_loop:
            task = asyncio.create_task(agent.run_async())
        try:
            yield
        finally:
            if task is not None:
                agent.stop()
                await task

    app = FastAPI(
        title="Proof Relayer API",
        description="Autonomous relayer for TEE-attested execution proofs",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.agent = agent

    @app.get("/health")
    def health():
        return {"status": "ok"}

    # === AGENT ===

    @app.get("/agent/status")
    def agent_status():
        """Current agent status."""
        last = agent.last_report
        return {
            "status": agent.status,
            "pending": len(agent.pending),
            "proofs": agent.store.counts(),
            "last_cycle": last.model_dump(mode="json") if last else None,
        }

    @app.get("/agent/stats")
    def agent_stats():
        return agent.stats.model_dump()

    @app.get("/agent/config")
    def agent_config():
        return agent.config.model_dump()

    @app.get("/agent/pending")
    def agent_pending():
        """Proofs deferred by the timing advisor, oldest first."""
        return [p.model_dump(mode="json", by_alias=True) for p in agent.pending.proofs()]

    @app.post("/agent/cycle")
    async def trigger_cycle():
        """Run one poll cycle now."""
        try:
            report = await agent.run_cycle()
        except CycleError as exc:
            logger.warning("api.cycle_failed error=%s", exc)
            raise HTTPException(503, str(exc))
        return report.model_dump(mode="json")

    # === PROOFS ===

    @app.get("/proofs/{proof_id}")
    def get_proof(proof_id: str):
        record = agent.store.get(proof_id)
        if record is None:
            if proof_id in agent.pending:
                return {"proof_id": proof_id, "status": "pending"}
            raise HTTPException(404, "Proof not found")
        return record.model_dump(mode="json")

    @app.post("/proofs/validate")
    def validate_proof(proof: ExecutionProof):
        """Dry-run the validator. Records nothing."""
        result = agent.validator.validate(
            proof, agent.config.trusted_signer, agent.now()
        )
        return result.model_dump(mode="json")

    return app
