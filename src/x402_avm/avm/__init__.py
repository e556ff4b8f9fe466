from x402_avm.avm.rpc import (
    AlgodClient,
    AlgodClientPool,
    AlgodError,
    ConfirmationError,
    get_algod_client,
)
from x402_avm.avm.transaction import (
    DecodedTxn,
    SignedTxn,
    UnsignedTxn,
    decode_payment_group,
    decode_transaction,
    get_payer_address,
)
from x402_avm.avm.wallet import (
    FacilitatorAccount,
    create_account_from_mnemonic,
    generate_account,
)

__all__ = [
    "AlgodClient",
    "AlgodClientPool",
    "AlgodError",
    "ConfirmationError",
    "get_algod_client",
    "DecodedTxn",
    "SignedTxn",
    "UnsignedTxn",
    "decode_payment_group",
    "decode_transaction",
    "get_payer_address",
    "FacilitatorAccount",
    "create_account_from_mnemonic",
    "generate_account",
]
