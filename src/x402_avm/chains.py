from typing import TypedDict

from x402_avm.networks import SUPPORTED_AVM_NETWORKS

# Public algonode endpoints accept any token
DEFAULT_ALGOD_TOKEN = "a" * 64

ALGOD_URLS = {
    "algorand": "https://mainnet-api.algonode.cloud",
    "algorand-testnet": "https://testnet-api.algonode.cloud",
}


class KnownAsset(TypedDict):
    human_name: str
    id: int
    name: str
    decimals: int


KNOWN_ASSETS: dict[str, list[KnownAsset]] = {
    "algorand": [
        {
            "human_name": "usdc",
            "id": 31566704,
            "name": "USDC",
            "decimals": 6,
        }
    ],
    "algorand-testnet": [
        {
            "human_name": "usdc",
            "id": 10458941,
            "name": "USDC",
            "decimals": 6,
        }
    ],
}


def get_default_asset(network: str, asset_type: str = "usdc") -> KnownAsset:
    """Get the default asset for a given network and asset type"""
    if network not in SUPPORTED_AVM_NETWORKS:
        raise ValueError(f"Unsupported network: {network}")
    for asset in KNOWN_ASSETS[network]:
        if asset["human_name"] == asset_type:
            return asset
    raise ValueError(f"Asset type '{asset_type}' not found for network {network}")


def get_asset_decimals(network: str, asset_id: int) -> int:
    """Get the decimals for a known asset id on a network"""
    for asset in KNOWN_ASSETS.get(network, []):
        if asset["id"] == asset_id:
            return asset["decimals"]
    raise ValueError(f"Asset {asset_id} not found for network {network}")


def get_algod_url(network: str) -> str:
    """Get the public algod endpoint for a network"""
    if network not in ALGOD_URLS:
        raise ValueError(f"Unsupported network: {network}")
    return ALGOD_URLS[network]
