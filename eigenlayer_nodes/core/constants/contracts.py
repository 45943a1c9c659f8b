"""Deployed EigenLayer contract addresses and strategy metadata.

Every address is checksum-normalized once at import time. This module is the
single source of truth for network -> address resolution.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType

from eth_utils import to_checksum_address

from eigenlayer_nodes.core.constants.chains import (
    CHAIN_ID_ETHEREUM,
    CHAIN_ID_HOLESKY,
    NETWORK_HOLESKY,
    NETWORK_MAINNET,
)

ROLE_DELEGATION_MANAGER = "DelegationManager"
ROLE_STRATEGY_MANAGER = "StrategyManager"
ROLE_EIGEN_POD_MANAGER = "EigenPodManager"
ROLE_AVS_DIRECTORY = "AVSDirectory"
ROLE_REWARDS_COORDINATOR = "RewardsCoordinator"
ROLE_ALLOCATION_MANAGER = "AllocationManager"
ROLE_STRATEGY_FACTORY = "StrategyFactory"

CONTRACT_ROLES = (
    ROLE_DELEGATION_MANAGER,
    ROLE_STRATEGY_MANAGER,
    ROLE_EIGEN_POD_MANAGER,
    ROLE_AVS_DIRECTORY,
    ROLE_REWARDS_COORDINATOR,
    ROLE_ALLOCATION_MANAGER,
    ROLE_STRATEGY_FACTORY,
)

# Multicall3 is deployed at the same address on every EVM chain.
MULTICALL3_ADDRESS = to_checksum_address("0xcA11bde05977b3631167028862bE2a173976CA11")

BEACON_CHAIN_ETH_STRATEGY = to_checksum_address(
    "0xbeaC0eeEeeeeEEeEeEEEEeeEEeEeeeEeeEEBEaC0"
)

WITHDRAWAL_DELAY_BLOCKS = 100800  # ~14 days
MIN_WITHDRAWAL_DELAY_BLOCKS = 50400  # ~7 days


@dataclass(frozen=True)
class NetworkProfile:
    network_id: str
    chain_id: int
    contract_addresses: Mapping[str, str]

    def address_of(self, role: str) -> str:
        return self.contract_addresses[role]


def _profile(network_id: str, chain_id: int, raw: dict[str, str]) -> NetworkProfile:
    missing = [role for role in CONTRACT_ROLES if not raw.get(role)]
    if missing:
        raise RuntimeError(f"{network_id} profile is missing roles: {missing}")
    addresses = {role: to_checksum_address(raw[role]) for role in CONTRACT_ROLES}
    return NetworkProfile(
        network_id=network_id,
        chain_id=chain_id,
        contract_addresses=MappingProxyType(addresses),
    )


NETWORK_PROFILES: Mapping[str, NetworkProfile] = MappingProxyType(
    {
        NETWORK_MAINNET: _profile(
            NETWORK_MAINNET,
            CHAIN_ID_ETHEREUM,
            {
                ROLE_DELEGATION_MANAGER: "0x39053D51B77DC0d36036Fc1fCc8Cb819df8Ef37A",
                ROLE_STRATEGY_MANAGER: "0x858646372CC42E1A627fcE94aa7A7033e7CF075A",
                ROLE_EIGEN_POD_MANAGER: "0x91E677b07F7AF907ec9a428aafA9fc14a0d3A338",
                ROLE_AVS_DIRECTORY: "0x135DDa560e946695d6f155dACaFC6f1F25C1F5AF",
                ROLE_REWARDS_COORDINATOR: "0x7750d328b314EfFa365A0402CcfD489B80B0adda",
                ROLE_ALLOCATION_MANAGER: "0x948a420b8CC1d6BFd0B6087C2E7c344a2CD0bc39",
                ROLE_STRATEGY_FACTORY: "0x5e4C39Ad7A3E881585e383dB9827EB4811f6F647",
            },
        ),
        NETWORK_HOLESKY: _profile(
            NETWORK_HOLESKY,
            CHAIN_ID_HOLESKY,
            {
                ROLE_DELEGATION_MANAGER: "0xA44151489861Fe9e3055d95adC98FbD462B948e7",
                ROLE_STRATEGY_MANAGER: "0xdfB5f6CE42aAA7830E94ECFCcAd411beF4d4D5b6",
                ROLE_EIGEN_POD_MANAGER: "0x30770d7E3e71112d7A6b7259542D1f680a70e315",
                ROLE_AVS_DIRECTORY: "0x055733000064333CaDDbC92763c58BF0192fFeBf",
                ROLE_REWARDS_COORDINATOR: "0xAcc1fb458a1317E886dB376Fc8141540537E68fE",
                ROLE_ALLOCATION_MANAGER: "0x78469728304326CBc65f8f95FA756B0B73164462",
                ROLE_STRATEGY_FACTORY: "0x9c01252B580efD11a05C00Aa42Dd58b6D4D227d4",
            },
        ),
    }
)


@dataclass(frozen=True)
class StrategyInfo:
    key: str
    name: str
    symbol: str
    address: str
    underlying_token: str
    description: str
    decimals: int = 18


def _strategy(
    key: str,
    name: str,
    symbol: str,
    address: str,
    underlying_token: str,
    description: str,
) -> StrategyInfo:
    return StrategyInfo(
        key=key,
        name=name,
        symbol=symbol,
        address=to_checksum_address(address),
        underlying_token=to_checksum_address(underlying_token),
        description=description,
    )


# Mainnet liquid-restaking strategies.
STRATEGY_INFO: Mapping[str, StrategyInfo] = MappingProxyType(
    {
        s.key: s
        for s in (
            _strategy(
                "stETH",
                "Lido Staked ETH Strategy",
                "stETH",
                "0x93c4b944D05dfe6df7645A86cd2206016c51564D",
                "0xae7ab96520DE3A18E5e111B5EaAb095312D7fE84",
                "Strategy for Lido stETH liquid staking token",
            ),
            _strategy(
                "rETH",
                "Rocket Pool ETH Strategy",
                "rETH",
                "0x1BeE69b7dFFfA4E2d53C2a2Df135C388AD25dCD2",
                "0xae78736Cd615f374D3085123A210448E74Fc6393",
                "Strategy for Rocket Pool rETH liquid staking token",
            ),
            _strategy(
                "cbETH",
                "Coinbase Wrapped Staked ETH Strategy",
                "cbETH",
                "0x54945180dB7943c0ed0FEE7EdaB2Bd24620256bc",
                "0xBe9895146f7AF43049ca1c1AE358B0541Ea49704",
                "Strategy for Coinbase cbETH liquid staking token",
            ),
            _strategy(
                "wBETH",
                "Wrapped Binance Beacon ETH Strategy",
                "wBETH",
                "0x7CA911E83dabf90C90dD3De5411a10F1A6112184",
                "0xa2E3356610840701BDf5611a53974510Ae27E2e1",
                "Strategy for Binance wBETH liquid staking token",
            ),
            _strategy(
                "osETH",
                "StakeWise ETH Strategy",
                "osETH",
                "0x57ba429517c3473B6d34CA9aCd56c0e735b94c02",
                "0xf1C9acDc66974dFB6dEcB12aA385b9cD01190E38",
                "Strategy for StakeWise osETH liquid staking token",
            ),
            _strategy(
                "swETH",
                "Swell ETH Strategy",
                "swETH",
                "0x0Fe4F44beE93503346A3Ac9EE5A26b130a5796d6",
                "0xf951E335afb289353dc249e82926178EaC7DEd78",
                "Strategy for Swell swETH liquid staking token",
            ),
            _strategy(
                "ankrETH",
                "Ankr Staked ETH Strategy",
                "ankrETH",
                "0x13760F50a9d7377e4F20CB8CF9e4c26586c658ff",
                "0xE95A203B1a91a908F9B9CE46459d101078c2c3cb",
                "Strategy for Ankr ankrETH liquid staking token",
            ),
            _strategy(
                "OETH",
                "Origin ETH Strategy",
                "OETH",
                "0xa4C637e0F704745D182e4D38cAb7E7485321d059",
                "0x856c4Efb76C1D1AE02e20CEB03A2A6a08b0b8dC3",
                "Strategy for Origin OETH liquid staking token",
            ),
            _strategy(
                "sfrxETH",
                "Frax Staked ETH Strategy",
                "sfrxETH",
                "0x8CA7A5d6f3acd3A7A8bC468a8CD0FB14B6BD28b6",
                "0xac3E018457B222d93114458476f3E3416Abbe38F",
                "Strategy for Frax sfrxETH liquid staking token",
            ),
            _strategy(
                "lsETH",
                "Liquid Staked ETH Strategy",
                "lsETH",
                "0xAe60d8180437b5C34bB956822ac2710972584473",
                "0x8c1BEd5b9a0928467c9B1341Da1D7BD5e10b6549",
                "Strategy for Liquid Collective lsETH liquid staking token",
            ),
            _strategy(
                "mETH",
                "Mantle Staked ETH Strategy",
                "mETH",
                "0x298aFB19A105D59E74658C4C334Ff360BadE6dd2",
                "0xd5F7838F5C461fefF7FE49ea5ebaF7728bB0ADfa",
                "Strategy for Mantle mETH liquid staking token",
            ),
            _strategy(
                "EIGEN",
                "EIGEN Token Strategy",
                "EIGEN",
                "0xaCB55C530Acdb2849e6d4f36992Cd8c9D50ED8F7",
                "0xec53bF9167f50cDEB3Ae105f56099aaaB9061F83",
                "Strategy for EIGEN governance token",
            ),
        )
    }
)

_STRATEGY_BY_ADDRESS = {s.address.lower(): s for s in STRATEGY_INFO.values()}


def get_strategy_info(address: str | None) -> StrategyInfo | None:
    if not address:
        return None
    return _STRATEGY_BY_ADDRESS.get(str(address).lower())
