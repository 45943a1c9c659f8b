from __future__ import annotations

from collections.abc import Mapping

from eigenlayer_nodes.core.constants.chains import CHAIN_ID_TO_NETWORK, NETWORK_ALIASES
from eigenlayer_nodes.core.constants.contracts import NETWORK_PROFILES, NetworkProfile
from eigenlayer_nodes.core.errors import ConfigurationError, UnsupportedNetworkError


def normalize_network(network: str | None) -> str:
    key = str(network or "").strip().lower()
    canonical = NETWORK_ALIASES.get(key)
    if canonical is None:
        raise UnsupportedNetworkError(network)
    return canonical


def resolve_network(network: str | None) -> NetworkProfile:
    return NETWORK_PROFILES[normalize_network(network)]


def resolve_addresses(network: str | None) -> Mapping[str, str]:
    return resolve_network(network).contract_addresses


def resolve_chain_id(network: str | None) -> int:
    return resolve_network(network).chain_id


def resolve_contract_address(role: str, chain_id: int) -> str:
    network = CHAIN_ID_TO_NETWORK.get(int(chain_id))
    if network is None:
        raise UnsupportedNetworkError(chain_id)
    addresses = NETWORK_PROFILES[network].contract_addresses
    if role not in addresses:
        raise ConfigurationError(f"Unknown contract role: {role}")
    return addresses[role]
