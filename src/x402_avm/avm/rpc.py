"""Async algod client utilities for x402 payments."""

import base64
import logging
from typing import Any, Optional, Sequence

import httpx
from algosdk import encoding
from algosdk.transaction import SuggestedParams
from algosdk.v2client.models import SimulateRequest, SimulateRequestTransactionGroup

from x402_avm.avm.transaction import GenericSignedTransaction
from x402_avm.chains import DEFAULT_ALGOD_TOKEN, get_algod_url

logger = logging.getLogger(__name__)

ALGOD_TOKEN_HEADER = "X-Algo-API-Token"

# Rounds to wait for a submitted group to be confirmed
DEFAULT_WAIT_ROUNDS = 3


class AlgodError(Exception):
    """Raised when algod answers with an error status."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"algod returned {status_code}: {message}")
        self.status_code = status_code
        self.message = message


class ConfirmationError(Exception):
    """Raised when a transaction is rejected or not confirmed in time."""


class AlgodClient:
    """Minimal async client for the algod REST API.

    Covers the calls the facilitator needs: simulate, submit and
    confirmation polling. Requests never block the event loop.
    """

    def __init__(
        self,
        url: str,
        token: str = DEFAULT_ALGOD_TOKEN,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        self.url = url.rstrip("/")
        self.token = token
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        headers = {ALGOD_TOKEN_HEADER: self.token, **kwargs.pop("headers", {})}
        response = await self._http_client.request(
            method, f"{self.url}/v2{path}", headers=headers, **kwargs
        )
        if response.status_code >= 400:
            try:
                message = response.json().get("message", response.text)
            except ValueError:
                message = response.text
            raise AlgodError(response.status_code, message)
        return response.json()

    async def status(self) -> dict[str, Any]:
        return await self._request("GET", "/status")

    async def status_after_block(self, round_num: int) -> dict[str, Any]:
        return await self._request("GET", f"/status/wait-for-block-after/{round_num}")

    async def pending_transaction_info(self, txid: str) -> dict[str, Any]:
        return await self._request("GET", f"/transactions/pending/{txid}")

    async def suggested_params(self, validity_rounds: int = 1000) -> SuggestedParams:
        """Get suggested transaction parameters, with a flat minimum fee."""
        params = await self._request("GET", "/transactions/params")
        return SuggestedParams(
            fee=params["min-fee"],
            first=params["last-round"],
            last=params["last-round"] + validity_rounds,
            gh=params["genesis-hash"],
            gen=params.get("genesis-id"),
            flat_fee=True,
            consensus_version=params.get("consensus-version"),
            min_fee=params["min-fee"],
        )

    async def simulate_raw_transactions(
        self,
        txns: Sequence[GenericSignedTransaction],
        allow_empty_signatures: bool = False,
    ) -> dict[str, Any]:
        """
        Dry-run a transaction group against current network state.

        Args:
            txns: The group to simulate, in group order
            allow_empty_signatures: Whether unsigned entries are accepted

        Returns:
            The simulate response, with one entry per group in "txn-groups"
        """
        request = SimulateRequest(
            txn_groups=[SimulateRequestTransactionGroup(txns=list(txns))],
            allow_empty_signatures=allow_empty_signatures,
        )
        body = base64.b64decode(encoding.msgpack_encode(request))
        return await self._request(
            "POST",
            "/transactions/simulate",
            content=body,
            headers={"Content-Type": "application/msgpack"},
        )

    async def send_raw_transactions(self, encoded_group: Sequence[str]) -> str:
        """
        Submit a group of base64-encoded signed transactions.

        Returns:
            The id of the first transaction in the group
        """
        body = b"".join(base64.b64decode(txn) for txn in encoded_group)
        result = await self._request(
            "POST",
            "/transactions",
            content=body,
            headers={"Content-Type": "application/x-binary"},
        )
        logger.debug(f"Submitted transaction group {result['txId']}")
        return result["txId"]

    async def wait_for_confirmation(
        self, txid: str, wait_rounds: int = DEFAULT_WAIT_ROUNDS
    ) -> dict[str, Any]:
        """
        Wait until a transaction is confirmed, for at most `wait_rounds` rounds.

        Raises:
            ConfirmationError: If the transaction is rejected by the pool or
                not confirmed within the round budget
        """
        last_round = (await self.status())["last-round"]
        start_round = last_round + 1
        current_round = start_round

        while current_round < start_round + wait_rounds:
            pending = await self.pending_transaction_info(txid)
            if pending.get("confirmed-round", 0) > 0:
                return pending
            if pending.get("pool-error"):
                raise ConfirmationError(
                    f"Transaction {txid} rejected: {pending['pool-error']}"
                )
            await self.status_after_block(current_round)
            current_round += 1

        raise ConfirmationError(
            f"Transaction {txid} not confirmed after {wait_rounds} rounds"
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http_client.aclose()


class AlgodClientPool:
    """One algod client per network sharing a single connection pool."""

    def __init__(
        self,
        urls: Optional[dict[str, str]] = None,
        token: str = DEFAULT_ALGOD_TOKEN,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._urls = urls or {}
        self._token = token
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=10.0)
        self._clients: dict[str, AlgodClient] = {}

    def get(self, network: str) -> AlgodClient:
        """
        Get the algod client for a network.

        Raises:
            ValueError: If network is not supported
        """
        if network not in self._clients:
            url = self._urls.get(network) or get_algod_url(network)
            self._clients[network] = AlgodClient(
                url, token=self._token, http_client=self._http_client
            )
        return self._clients[network]

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http_client.aclose()


def get_algod_client(
    network: str,
    custom_url: Optional[str] = None,
    token: str = DEFAULT_ALGOD_TOKEN,
) -> AlgodClient:
    """
    Create an algod client for the given network.

    Example:
        >>> client = get_algod_client("algorand-testnet")
        >>> status = await client.status()
    """
    return AlgodClient(custom_url or get_algod_url(network), token=token)
