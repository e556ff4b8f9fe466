import pytest

from x402_avm.avm.wallet import FacilitatorAccount

from .mocks import FakeAlgod, FakeAlgodPool, new_account


@pytest.fixture
def payer():
    return new_account()


@pytest.fixture
def receiver():
    return new_account()


@pytest.fixture
def facilitator_key():
    return new_account()


@pytest.fixture
def facilitator_account(facilitator_key):
    return FacilitatorAccount(facilitator_key.private_key)


@pytest.fixture
def algod():
    return FakeAlgod()


@pytest.fixture
def algod_pool(algod):
    return FakeAlgodPool(algod)
