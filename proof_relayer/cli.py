"""
Command line entry point for the relayer.

  proof-relayer run        poll and settle until SIGINT / SIGTERM
  proof-relayer serve      same, behind the observability API
  proof-relayer validate   dry-run the validator over a proofs file
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
import time
from typing import List, Optional

from proof_relayer.agent.loop import RelayerAgent
from proof_relayer.config import (
    ConfigError,
    RuntimeSettings,
    load_agent_config,
    load_runtime_settings,
)
from proof_relayer.execution.simulated import SimulatedExecutionTarget
from proof_relayer.execution.targets import ExecutionTarget
from proof_relayer.models.agent import AgentConfig
from proof_relayer.sources.proof_source import (
    FileProofSource,
    ProofSourceError,
    StaticProofSource,
    sample_proof,
)
from proof_relayer.store.proof_store import ProofStore
from proof_relayer.validation.validator import ProofValidator

logger = logging.getLogger("proof_relayer")


def _build_target(settings: RuntimeSettings, simulate: bool) -> ExecutionTarget:
    if simulate:
        return SimulatedExecutionTarget()

    from web3 import Web3

    from proof_relayer.execution.targets import Web3ExecutionTarget

    if not settings.hook_address:
        raise ConfigError("HOOK_ADDRESS is required unless --simulate is given")
    sender = settings.relayer_address
    if sender is None and settings.relayer_private_key:
        sender = Web3().eth.account.from_key(settings.relayer_private_key).address
    if sender is None:
        raise ConfigError("RELAYER_ADDRESS or RELAYER_PRIVATE_KEY is required")
    return Web3ExecutionTarget(
        settings.rpc_url,
        settings.hook_address,
        sender,
        chain_id=settings.chain_id,
        private_key=settings.relayer_private_key,
    )


def build_agent(
    settings: RuntimeSettings,
    config: AgentConfig,
    simulate: bool = False,
    demo: bool = False,
) -> RelayerAgent:
    """Wire source, target and store from settings."""
    if demo:
        source = StaticProofSource([[sample_proof(config.trusted_signer, int(time.time()))]])
    else:
        source = FileProofSource(settings.proofs_file)
    logger.info(
        "agent.wiring source=%s target=%s db=%s",
        "demo" if demo else settings.proofs_file,
        "simulated" if simulate else settings.rpc_url,
        settings.db_path,
    )
    return RelayerAgent(
        proof_source=source,
        execution_target=_build_target(settings, simulate),
        proof_store=ProofStore(settings.db_path),
        config=config,
    )


async def _run(agent: RelayerAgent) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, agent.stop)
        except NotImplementedError:  # pragma: no cover - Windows event loops
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(agent.stop))
    await agent.run_async()


def cmd_run(args: argparse.Namespace) -> int:
    agent = build_agent(
        load_runtime_settings(), load_agent_config(), args.simulate, args.demo
    )
    asyncio.run(_run(agent))
    print(json.dumps(agent.summary(), indent=2))
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    from proof_relayer.api.app import create_app

    agent = build_agent(
        load_runtime_settings(), load_agent_config(), args.simulate, args.demo
    )
    app = create_app(agent, run_loop=True)
    uvicorn.run(app, host=args.host, port=args.port, reload=False)
    print(json.dumps(agent.summary(), indent=2))
    return 0


def cmd_validate(args: argparse.Namespace) -> int:
    config = load_agent_config()
    validator = ProofValidator(config)
    proofs = asyncio.run(FileProofSource(args.file).fetch_candidates())
    now = int(time.time())
    rejected = 0
    for proof in proofs:
        result = validator.validate(proof, config.trusted_signer, now)
        if not result.accepted:
            rejected += 1
        print(json.dumps(result.model_dump(mode="json")))
    return 1 if rejected else 0


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="proof-relayer")
    parser.add_argument("--log-level", default="INFO")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Poll and settle proofs until stopped")
    serve = sub.add_parser("serve", help="Run the agent behind the HTTP API")
    for p in (run, serve):
        p.add_argument("--simulate", action="store_true", help="Use the in-memory chain")
        p.add_argument("--demo", action="store_true", help="Feed the built-in sample proof")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8020)

    validate = sub.add_parser("validate", help="Validate a proofs file without submitting")
    validate.add_argument("file")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    handlers = {"run": cmd_run, "serve": cmd_serve, "validate": cmd_validate}
    try:
        return handlers[args.command](args)
    except (ConfigError, ProofSourceError) as exc:
        logger.error("%s", exc)
        return 2


if __name__ == "__main__":
    sys.exit(main())
