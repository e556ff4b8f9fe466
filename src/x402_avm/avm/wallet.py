"""Algorand account utilities for the facilitator signer."""

from algosdk import account, mnemonic, transaction


class FacilitatorAccount:
    """Signing handle for the facilitator's Algorand account.

    Signing is a pure function of the transaction and the key, so a single
    instance can be shared between concurrent requests.
    """

    def __init__(self, private_key: str):
        self._private_key = private_key
        self._address = account.address_from_private_key(private_key)

    @property
    def address(self) -> str:
        """Get the base32-encoded address."""
        return self._address

    def sign(self, txn: transaction.Transaction) -> transaction.SignedTransaction:
        """Sign a transaction with the facilitator key."""
        return txn.sign(self._private_key)

    def __str__(self) -> str:
        return self.address

    def __repr__(self) -> str:
        return f"FacilitatorAccount({self.address})"


def create_account_from_mnemonic(passphrase: str) -> FacilitatorAccount:
    """
    Create a FacilitatorAccount from a 25-word Algorand mnemonic.

    Raises:
        ValueError: If the mnemonic is invalid
    """
    try:
        private_key = mnemonic.to_private_key(passphrase.strip())
    except Exception as e:
        raise ValueError(f"Invalid Algorand mnemonic: {e}")
    return FacilitatorAccount(private_key)


def generate_account() -> FacilitatorAccount:
    """Generate a new random account."""
    private_key, _ = account.generate_account()
    return FacilitatorAccount(private_key)
