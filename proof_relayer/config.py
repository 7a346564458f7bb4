"""
Configuration loading for the relayer.

Agent policy (AgentConfig) and runtime wiring (RuntimeSettings) are read from
the environment once at startup. Unset variables keep their defaults.
"""

import os
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError

from proof_relayer.models.agent import AgentConfig

__all__ = [
    "ConfigError",
    "RuntimeSettings",
    "load_agent_config",
    "load_runtime_settings",
]

# AgentConfig field -> environment variables, first match wins
AGENT_ENV: Dict[str, List[str]] = {
    "trusted_signer": ["RELAYER_TRUSTED_SIGNER", "TRUSTED_TEE_SIGNER"],
    "max_proof_age_seconds": ["RELAYER_MAX_PROOF_AGE"],
    "min_signature_length": ["RELAYER_MIN_SIGNATURE_LENGTH"],
    "max_fee_price": ["RELAYER_MAX_FEE_PRICE", "MAX_GAS_PRICE_GWEI"],
    "large_trade_threshold": ["RELAYER_LARGE_TRADE_THRESHOLD"],
    "risk_gating_enabled": ["RELAYER_RISK_GATING", "MEV_PROTECTION_ENABLED"],
    "base_gas_estimate": ["RELAYER_BASE_GAS_ESTIMATE"],
    "fee_buffer_percent": ["RELAYER_FEE_BUFFER_PERCENT", "GAS_BUFFER_PERCENT"],
    "submission_validity_seconds": ["RELAYER_VALIDITY_WINDOW"],
    "submission_timeout_seconds": ["RELAYER_SUBMISSION_TIMEOUT"],
    "confirmation_timeout_seconds": ["RELAYER_CONFIRMATION_TIMEOUT"],
    "max_concurrent_submissions": ["RELAYER_MAX_CONCURRENT_SUBMISSIONS"],
    "poll_interval_seconds": ["RELAYER_POLL_INTERVAL"],
    "recheck_expiry_on_retry": ["RELAYER_RECHECK_EXPIRY"],
    "requeue_failed_executions": ["RELAYER_REQUEUE_FAILED"],
}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


class ConfigError(ValueError):
    """Raised when configuration values are missing or invalid."""
    pass


@dataclass(frozen=True)
class RuntimeSettings:
    """How the relayer is wired to the outside world."""

    rpc_url: str
    hook_address: Optional[str]
    chain_id: Optional[int]
    relayer_address: Optional[str]
    relayer_private_key: Optional[str]
    proofs_file: str
    db_path: str


def _read_env(env: Mapping[str, str], names: List[str]) -> Optional[str]:
    for name in names:
        value = env.get(name)
        if value is not None and value.strip() != "":
            return value.strip()
    return None


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ConfigError(f"{name} must be a boolean, got {value!r}")


def load_agent_config(env: Optional[Mapping[str, str]] = None) -> AgentConfig:
    """
    Build an AgentConfig from environment variables.

    Raises:
        ConfigError: If a value cannot be parsed or violates a bound.
    """
    if env is None:
        env = os.environ

    overrides: Dict[str, Any] = {}
    for field_name, names in AGENT_ENV.items():
        value = _read_env(env, names)
        if value is None:
            continue
        if AgentConfig.model_fields[field_name].annotation is bool:
            overrides[field_name] = _parse_bool(names[0], value)
        else:
            overrides[field_name] = value

    try:
        return AgentConfig(**overrides)
    except ValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in e["loc"]) for e in exc.errors())
        raise ConfigError(f"invalid relayer configuration: {fields}") from exc


def load_runtime_settings(env: Optional[Mapping[str, str]] = None) -> RuntimeSettings:
    if env is None:
        env = os.environ

    chain_id_raw = _read_env(env, ["CHAIN_ID"])
    try:
        chain_id = int(chain_id_raw) if chain_id_raw is not None else None
    except ValueError as exc:
        raise ConfigError(f"CHAIN_ID must be an integer, got {chain_id_raw!r}") from exc

    return RuntimeSettings(
        rpc_url=_read_env(env, ["RPC_URL"]) or "https://sepolia.base.org",
        hook_address=_read_env(env, ["HOOK_ADDRESS"]),
        chain_id=chain_id,
        relayer_address=_read_env(env, ["RELAYER_ADDRESS"]),
        relayer_private_key=_read_env(env, ["RELAYER_PRIVATE_KEY"]),
        proofs_file=_read_env(env, ["RELAYER_PROOFS_FILE"]) or "execution_proofs.json",
        db_path=_read_env(env, ["RELAYER_DB"]) or ":memory:",
    )
