"""Algorand transaction utilities for x402 payments."""

import logging
from dataclasses import dataclass
from typing import Literal, Optional, Sequence, Union

from algosdk import encoding, transaction

from x402_avm.avm.wallet import FacilitatorAccount
from x402_avm.types import PaymentRequirements

logger = logging.getLogger(__name__)

GenericSignedTransaction = Union[
    transaction.SignedTransaction,
    transaction.LogicSigTransaction,
    transaction.MultisigTransaction,
]


@dataclass(frozen=True)
class SignedTxn:
    """A group entry that arrived with a signature attached."""

    txn: transaction.Transaction
    signed: GenericSignedTransaction
    encoded: str
    kind: Literal["signed"] = "signed"


@dataclass(frozen=True)
class UnsignedTxn:
    """A group entry that arrived without a signature."""

    txn: transaction.Transaction
    encoded: str
    kind: Literal["unsigned"] = "unsigned"


DecodedTxn = Union[SignedTxn, UnsignedTxn]


def decode_transaction(encoded: str) -> Optional[DecodedTxn]:
    """
    Decode a base64 msgpack transaction, signed or unsigned.

    Args:
        encoded: Base64-encoded transaction

    Returns:
        SignedTxn or UnsignedTxn, or None if the bytes are neither
    """
    try:
        decoded = encoding.msgpack_decode(encoded)
    except Exception as e:
        logger.debug(f"Could not decode transaction: {e}")
        return None

    if isinstance(decoded, transaction.Transaction):
        return UnsignedTxn(txn=decoded, encoded=encoded)
    if isinstance(getattr(decoded, "transaction", None), transaction.Transaction):
        return SignedTxn(txn=decoded.transaction, signed=decoded, encoded=encoded)
    return None


def decode_payment_group(payment_group: Sequence[str]) -> list[DecodedTxn]:
    """Decode every group entry, dropping entries that fail to decode."""
    decoded = []
    for encoded in payment_group:
        txn = decode_transaction(encoded)
        if txn is not None:
            decoded.append(txn)
    return decoded


def encode_transaction(
    txn: Union[transaction.Transaction, GenericSignedTransaction],
) -> str:
    """Encode a signed or unsigned transaction to base64 msgpack."""
    return encoding.msgpack_encode(txn)


def is_matching_payment(
    txn: transaction.Transaction, requirements: PaymentRequirements
) -> bool:
    """Check that a transaction is the exact asset transfer the requirements ask for."""
    return (
        isinstance(txn, transaction.AssetTransferTxn)
        and txn.type == "axfer"
        and str(txn.amount) == requirements.max_amount_required
        and txn.receiver == requirements.pay_to
        and str(txn.index) == requirements.asset
    )


def is_valid_fee_pool_transaction(txn: transaction.Transaction, fee_payer: str) -> bool:
    """A fee pool transaction is a zero-amount self-payment that cannot move funds."""
    return (
        isinstance(txn, transaction.PaymentTxn)
        and txn.type == "pay"
        and txn.sender == fee_payer
        and txn.receiver == fee_payer
        and txn.amt == 0
        and not txn.close_remainder_to
        and not txn.rekey_to
    )


def fee_pool_indexes(decoded: Sequence[DecodedTxn], fee_payer: str) -> list[int]:
    """Indexes of the group entries sent by the fee payer."""
    return [i for i, entry in enumerate(decoded) if entry.txn.sender == fee_payer]


def validate_fee_pool_transactions(decoded: Sequence[DecodedTxn], fee_payer: str) -> bool:
    """Check every transaction sent by the fee payer is a valid fee pool transaction."""
    return all(
        is_valid_fee_pool_transaction(decoded[i].txn, fee_payer)
        for i in fee_pool_indexes(decoded, fee_payer)
    )


def cosign_fee_pool_transactions(
    decoded: Sequence[DecodedTxn],
    facilitator: FacilitatorAccount,
) -> list[DecodedTxn]:
    """
    Sign the fee pool transactions in place with the facilitator key.

    Callers must validate the fee pool transactions first.

    Returns:
        A new group where each fee pool entry is replaced by its signed form
    """
    final = list(decoded)
    for i in fee_pool_indexes(decoded, facilitator.address):
        signed = facilitator.sign(decoded[i].txn)
        final[i] = SignedTxn(
            txn=decoded[i].txn, signed=signed, encoded=encode_transaction(signed)
        )
    return final


def as_signed_transactions(group: Sequence[DecodedTxn]) -> list[GenericSignedTransaction]:
    """Signed transaction objects for a group; unsigned entries carry no signature."""
    return [
        entry.signed
        if isinstance(entry, SignedTxn)
        else transaction.SignedTransaction(entry.txn, None)
        for entry in group
    ]


def get_payer_address(encoded: str) -> Optional[str]:
    """Sender of an encoded transaction, or None if it cannot be decoded."""
    decoded = decode_transaction(encoded)
    return decoded.txn.sender if decoded else None
