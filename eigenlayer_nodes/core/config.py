import json
import os
from pathlib import Path
from typing import Any

from eigenlayer_nodes.core.adapters.models import (
    ApiCredential,
    ConnectionCredential,
    SigningCredential,
)
from eigenlayer_nodes.core.errors import ConfigurationError

_CONFIG_ENV_KEYS = ("EIGENLAYER_NODES_CONFIG_PATH", "EIGENLAYER_NODES_CONFIG")
_DEFAULT_CONFIG_FILENAME = "config.json"
_DEFAULT_POLLER_STATE_FILENAME = ".eigenlayer_poller_state.json"

_RPC_API_KEY_ENV = "EIGENLAYER_RPC_API_KEY"
_PRIVATE_KEY_ENV = "EIGENLAYER_PRIVATE_KEY"
_API_KEY_ENV = "EIGENLAYER_API_KEY"


def _find_project_root(start: Path) -> Path | None:
    cur = start.resolve()
    for parent in [cur, *cur.parents]:
        if (parent / "pyproject.toml").exists():
            return parent
    return None


def _project_root() -> Path | None:
    return _find_project_root(Path.cwd()) or _find_project_root(Path(__file__).parent)


def resolve_config_path(path: str | Path | None = None) -> Path:
    if path is not None:
        return Path(path).expanduser()

    env_path = next(
        (os.getenv(k, "").strip() for k in _CONFIG_ENV_KEYS if os.getenv(k)), ""
    )
    if env_path:
        p = Path(env_path).expanduser()
        if p.is_absolute():
            return p
        root = _project_root()
        return (root / p) if root else p

    root = _project_root()
    return (root / _DEFAULT_CONFIG_FILENAME) if root else Path(_DEFAULT_CONFIG_FILENAME)


def load_config_json(
    path: str | Path | None = None, *, require_exists: bool = False
) -> dict[str, Any]:
    cfg_path = resolve_config_path(path)
    if not cfg_path.exists():
        if require_exists:
            raise FileNotFoundError(f"Config file not found: {cfg_path}")
        return {}
    try:
        parsed = json.loads(cfg_path.read_text())
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Config file {cfg_path} is not valid JSON") from exc
    return parsed if isinstance(parsed, dict) else {}


def write_config_json(path: str | Path | None, config: dict[str, Any]) -> Path:
    cfg_path = resolve_config_path(path)
    cfg_path.parent.mkdir(parents=True, exist_ok=True)
    cfg_path.write_text(json.dumps(config, indent=2) + "\n")
    return cfg_path


CONFIG: dict[str, Any] = load_config_json()


def set_config(config: dict[str, Any]) -> None:
    """Replace the global CONFIG dict in-place.

    This allows code that imported CONFIG at module import time to see updates.
    """
    CONFIG.clear()
    CONFIG.update(config)


def load_config(
    path: str | Path | None = None, *, require_exists: bool = False
) -> None:
    """Load config from disk into the global CONFIG dict."""
    set_config(load_config_json(path, require_exists=require_exists))


def _section(name: str) -> dict[str, Any]:
    value = CONFIG.get(name)
    return dict(value) if isinstance(value, dict) else {}


def get_connection_credential() -> ConnectionCredential:
    rpc = _section("rpc")
    if not (rpc.get("api_key") or rpc.get("apiKey")):
        env_key = os.environ.get(_RPC_API_KEY_ENV)
        if env_key:
            rpc["api_key"] = env_key
    return ConnectionCredential.model_validate(rpc)


def get_signing_credential() -> SigningCredential | None:
    wallet = _section("wallet")
    if not (wallet.get("private_key") or wallet.get("privateKey")):
        env_key = os.environ.get(_PRIVATE_KEY_ENV)
        if env_key:
            wallet["private_key"] = env_key
    if not wallet:
        return None
    return SigningCredential.model_validate(wallet)


def get_api_credential() -> ApiCredential:
    api = _section("api")
    if not (api.get("api_key") or api.get("apiKey")):
        env_key = os.environ.get(_API_KEY_ENV)
        if env_key:
            api["api_key"] = env_key
    return ApiCredential.model_validate(api)


def get_poller_state_path() -> Path:
    poller = _section("poller")
    raw = poller.get("state_path")
    if raw:
        return Path(str(raw)).expanduser()
    root = _project_root()
    return (
        (root / _DEFAULT_POLLER_STATE_FILENAME)
        if root
        else Path(_DEFAULT_POLLER_STATE_FILENAME)
    )
