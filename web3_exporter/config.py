"""Settings from environment variables, overridable on the command line.

Env vars:
  WEB3_PROVIDER_URL     JSON-RPC URL (default: http://127.0.0.1:8545)
  METRICS_PORT          listener port (default: 9990)
  METRICS_HOST          listener address (default: 0.0.0.0)
  ENABLE_PARITY         "true" to collect parity_chainStatus block gap (default: off)
  MAX_REMAINING_BLOCKS  readiness threshold in blocks (default: 10)
  RPC_TIMEOUT_SECONDS   per-request RPC timeout (default: 5.0)
  LOG_LEVEL             logging level name (default: INFO)
"""

import argparse
import os
from dataclasses import dataclass
from typing import List, Mapping, Optional

from .readiness import DEFAULT_MAX_REMAINING_BLOCKS
from .rpc import DEFAULT_TIMEOUT

DEFAULT_PROVIDER_URL = "http://127.0.0.1:8545"
DEFAULT_PORT = 9990
DEFAULT_HOST = "0.0.0.0"


class ConfigError(ValueError):
    pass


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "")
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name, "")
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_bool(env: Mapping[str, str], name: str) -> bool:
    return (env.get(name, "") or "").strip().lower() == "true"


@dataclass(frozen=True)
class Settings:
    provider_url: str = DEFAULT_PROVIDER_URL
    port: int = DEFAULT_PORT
    host: str = DEFAULT_HOST
    enable_parity: bool = False
    max_remaining_blocks: int = DEFAULT_MAX_REMAINING_BLOCKS
    rpc_timeout: float = DEFAULT_TIMEOUT
    log_level: str = "INFO"

    def validate(self) -> "Settings":
        if self.max_remaining_blocks < 0:
            raise ConfigError(f"max remaining blocks must be >= 0, got {self.max_remaining_blocks}")
        if self.rpc_timeout <= 0:
            raise ConfigError(f"RPC timeout must be > 0, got {self.rpc_timeout}")
        if not 0 < self.port < 65536:
            raise ConfigError(f"port out of range: {self.port}")
        return self


def build_parser(env: Mapping[str, str]) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="web3-exporter",
        description="Prometheus exporter and health endpoints for an Ethereum JSON-RPC node",
    )
    parser.add_argument(
        "--provider-url",
        "--providerURL",
        dest="provider_url",
        default=(env.get("WEB3_PROVIDER_URL", "") or DEFAULT_PROVIDER_URL).strip(),
        help="Web3 provider URL",
    )
    parser.add_argument("--port", type=int, default=_env_int(env, "METRICS_PORT", DEFAULT_PORT), help="Port number")
    parser.add_argument("--host", default=env.get("METRICS_HOST", "") or DEFAULT_HOST, help="Listen address")
    parser.add_argument(
        "--enable-parity",
        "--enableParity",
        dest="enable_parity",
        action="store_true",
        default=_env_bool(env, "ENABLE_PARITY"),
        help="Collect the parity_chainStatus block gap and require it to be empty for readiness",
    )
    parser.add_argument(
        "--max-remaining-blocks",
        "--max_remaining_blocks",
        dest="max_remaining_blocks",
        type=int,
        default=_env_int(env, "MAX_REMAINING_BLOCKS", DEFAULT_MAX_REMAINING_BLOCKS),
        help="Maximum remaining blocks to allow for readiness check",
    )
    parser.add_argument(
        "--rpc-timeout",
        dest="rpc_timeout",
        type=float,
        default=_env_float(env, "RPC_TIMEOUT_SECONDS", DEFAULT_TIMEOUT),
        help="Per-request RPC timeout in seconds",
    )
    parser.add_argument("--log-level", dest="log_level", default=env.get("LOG_LEVEL", "") or "INFO")
    return parser


def load_settings(argv: Optional[List[str]] = None, env: Optional[Mapping[str, str]] = None) -> Settings:
    if env is None:
        env = os.environ
    args = build_parser(env).parse_args(argv)
    return Settings(
        provider_url=args.provider_url,
        port=args.port,
        host=args.host,
        enable_parity=args.enable_parity,
        max_remaining_blocks=args.max_remaining_blocks,
        rpc_timeout=args.rpc_timeout,
        log_level=args.log_level.upper(),
    ).validate()
