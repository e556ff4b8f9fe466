from typing import Literal


SupportedNetworks = Literal["algorand", "algorand-testnet"]

SUPPORTED_AVM_NETWORKS: list[str] = ["algorand-testnet", "algorand"]

TESTNET_NETWORKS = {"algorand-testnet"}


def is_testnet(network: str) -> bool:
    return network in TESTNET_NETWORKS
