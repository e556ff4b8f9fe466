from decimal import Decimal

import pytest

from x402_avm.storage import (
    FileSystemContentStore,
    InMemoryLinkStore,
    InMemoryPaymentRecorder,
    Link,
    PaymentRecord,
)

from .mocks import new_account


@pytest.fixture
def store(tmp_path):
    (tmp_path / "notes.txt").write_bytes(b"a" * 10)
    (tmp_path / "sub").mkdir()
    (tmp_path.parent / "secret.txt").write_text("outside")
    return FileSystemContentStore(tmp_path)


class TestFileSystemContentStore:
    def test_exists(self, store):
        assert store.exists("notes.txt")
        assert not store.exists("missing.txt")
        assert not store.exists("sub")

    def test_outside_upload_dir(self, store):
        assert not store.exists("../secret.txt")
        assert store.path("../secret.txt") is None

    def test_open_streams_chunks(self, store):
        assert list(store.open("notes.txt", chunk_size=4)) == [b"aaaa", b"aaaa", b"aa"]

    def test_open_missing_raises_eagerly(self, store):
        with pytest.raises(FileNotFoundError):
            store.open("missing.txt")

    def test_open_outside_raises(self, store):
        with pytest.raises(FileNotFoundError):
            store.open("../secret.txt")


class TestInMemoryStores:
    @pytest.mark.asyncio
    async def test_link_store(self):
        link = Link(
            creator_wallet=new_account().address,
            content_type="URL",
            content_path="https://example.org",
            price=Decimal("1"),
        )
        store = InMemoryLinkStore()
        store.add(link)

        assert await store.get(link.id) is link
        assert await store.get("unknown") is None

    @pytest.mark.asyncio
    async def test_payment_recorder(self):
        recorder = InMemoryPaymentRecorder()
        record = PaymentRecord(link_id="l1", payer_address="P", amount=Decimal("0.01"))

        await recorder.record(record)
        await recorder.record(PaymentRecord(link_id="l2", payer_address="P", amount=1))

        assert recorder.for_link("l1") == [record]
        assert record.timestamp.tzinfo is not None


def test_link_camel_case():
    link = Link.model_validate(
        {
            "creatorWallet": "W",
            "contentType": "FILE",
            "contentPath": "a.pdf",
            "price": "0.5",
            "assetId": 7,
        }
    )
    assert link.asset_id == 7
    assert link.network == "algorand-testnet"
    assert len(link.id) == 32
