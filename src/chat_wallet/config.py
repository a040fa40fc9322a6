"""Configuration system for Chat Wallet.

Loads bot config from `.chat-wallet/config.yaml` and supports environment
variable expansion so secrets such as the Telegram token and the RPC URL can
stay out of the file.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Environment-variable expansion helper
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)\}")


def _expand_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with their environment values.

    If the variable is not set the placeholder is left as-is so that
    validation can catch it later.
    """

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        return os.environ.get(var_name, match.group(0))

    return _ENV_VAR_RE.sub(_replace, value)


def _expand_env_recursive(obj: object) -> object:
    """Walk an arbitrary nested structure and expand env vars in strings."""
    if isinstance(obj, str):
        return _expand_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _expand_env_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env_recursive(item) for item in obj]
    return obj


def is_unresolved(value: str) -> bool:
    """True when *value* still holds a ``${VAR}`` placeholder."""
    return bool(_ENV_VAR_RE.search(value))


# ---------------------------------------------------------------------------
# Pydantic v2 models
# ---------------------------------------------------------------------------


class ChainConfig(BaseModel):
    """Which network the custodial accounts live on."""

    network: str = "ethereum"
    rpc_url: Optional[str] = None  # Falls back to the network's public RPC


class TelegramConfig(BaseModel):
    """Telegram transport settings."""

    token: str = "${TELEGRAM_TOKEN}"
    concurrent_updates: bool = True  # different chats run concurrently


class StorageConfig(BaseModel):
    """Where accounts and pending prompts are kept."""

    db_file: str = "wallet.db"
    key_password: str = ""  # empty = keys stored in plaintext


class TradingConfig(BaseModel):
    """Token lookup and quick-buy settings."""

    lookup_url: str = "https://api.dexscreener.com"
    lookup_timeout: float = 15.0
    buy_amounts: list[str] = Field(default_factory=lambda: ["0.1", "0.5"])


class LoggingConfig(BaseModel):
    level: str = "INFO"


class BotConfig(BaseModel):
    """Root configuration object for one bot deployment."""

    name: str = "Chat Wallet"
    chain: ChainConfig = Field(default_factory=ChainConfig)
    telegram: TelegramConfig = Field(default_factory=TelegramConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    trading: TradingConfig = Field(default_factory=TradingConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------


def get_root_dir(base: Path | None = None, *, create: bool = False) -> Path:
    """Return the ``.chat-wallet/`` directory.

    Parameters
    ----------
    base:
        Parent directory that contains (or will contain) the root folder.
        Defaults to the current working directory.
    create:
        If *True*, create the directory if it doesn't exist.
    """
    if base is None:
        base = Path.cwd()
    root = Path(base) / ".chat-wallet"
    if create:
        root.mkdir(parents=True, exist_ok=True)
    return root


def load_config(path: Path) -> BotConfig:
    """Load and validate a bot configuration from a YAML file.

    Environment variable placeholders (``${VAR}``) are expanded before
    validation.
    """
    raw_text = path.read_text(encoding="utf-8")
    raw_data = yaml.safe_load(raw_text) or {}
    expanded = _expand_env_recursive(raw_data)
    return BotConfig.model_validate(expanded)


def save_config(config: BotConfig, path: Path) -> None:
    """Serialize a :class:`BotConfig` to a YAML file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump(mode="python", exclude_none=True)
    with open(path, "w", encoding="utf-8") as fh:
        yaml.dump(data, fh, default_flow_style=False, sort_keys=False)
