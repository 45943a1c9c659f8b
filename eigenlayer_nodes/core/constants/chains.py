CHAIN_ID_ETHEREUM = 1
CHAIN_ID_HOLESKY = 17000

NETWORK_MAINNET = "mainnet"
NETWORK_HOLESKY = "holesky"

NETWORK_ALIASES = {
    "mainnet": NETWORK_MAINNET,
    "ethereum": NETWORK_MAINNET,
    "holesky": NETWORK_HOLESKY,
    "testnet": NETWORK_HOLESKY,
}

CHAIN_ID_TO_NETWORK: dict[int, str] = {
    CHAIN_ID_ETHEREUM: NETWORK_MAINNET,
    CHAIN_ID_HOLESKY: NETWORK_HOLESKY,
}

SUPPORTED_NETWORKS = [NETWORK_MAINNET, NETWORK_HOLESKY]
