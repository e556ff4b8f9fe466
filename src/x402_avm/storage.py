"""Storage collaborators: payment links, uploaded content and payment records."""

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Iterator, Literal, Optional, Protocol

from pydantic import Field

from x402_avm.networks import SupportedNetworks
from x402_avm.types import CamelModel

logger = logging.getLogger(__name__)

ContentType = Literal["FILE", "URL"]


class Link(CamelModel):
    """A payment link selling access to a file or an external URL"""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    creator_wallet: str
    content_type: ContentType
    content_path: Optional[str] = None
    price: Decimal
    network: SupportedNetworks = "algorand-testnet"
    decimals: int = 6
    asset_id: Optional[int] = None


class PaymentRecord(CamelModel):
    """A settled payment for a link"""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    link_id: str
    payer_address: str
    amount: Decimal
    txn_id: Optional[str] = None
    txn_group_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class LinkStore(Protocol):
    async def get(self, link_id: str) -> Optional[Link]: ...


class PaymentRecorder(Protocol):
    """Durable sink for settled payments. Must tolerate duplicate records."""

    async def record(self, record: PaymentRecord) -> None: ...


class ContentStore(Protocol):
    def exists(self, handle: str) -> bool: ...

    def open(self, handle: str, chunk_size: int = 64 * 1024) -> Iterator[bytes]: ...


class InMemoryLinkStore:
    def __init__(self, links: Optional[list[Link]] = None):
        self._links = {link.id: link for link in links or []}

    def add(self, link: Link) -> Link:
        self._links[link.id] = link
        return link

    async def get(self, link_id: str) -> Optional[Link]:
        return self._links.get(link_id)


class InMemoryPaymentRecorder:
    def __init__(self):
        self.records: list[PaymentRecord] = []

    async def record(self, record: PaymentRecord) -> None:
        self.records.append(record)

    def for_link(self, link_id: str) -> list[PaymentRecord]:
        return [record for record in self.records if record.link_id == link_id]


class FileSystemContentStore:
    """Serves uploaded files from a single directory.

    Handles are file names relative to the upload directory; anything
    resolving outside of it is treated as missing.
    """

    def __init__(self, root: str | Path):
        self.root = Path(root).resolve()

    def path(self, handle: str) -> Optional[Path]:
        path = (self.root / handle).resolve()
        if path != self.root and self.root not in path.parents:
            logger.warning(f"Rejected content handle outside upload dir: {handle}")
            return None
        return path

    def exists(self, handle: str) -> bool:
        path = self.path(handle)
        return path is not None and path.is_file()

    def open(self, handle: str, chunk_size: int = 64 * 1024) -> Iterator[bytes]:
        """Stream a stored file in chunks.

        Raises:
            FileNotFoundError: If the handle does not name a stored file
        """
        path = self.path(handle)
        if path is None or not path.is_file():
            raise FileNotFoundError(handle)
        return _read_chunks(path, chunk_size)


def _read_chunks(path: Path, chunk_size: int) -> Iterator[bytes]:
    with path.open("rb") as f:
        while chunk := f.read(chunk_size):
            yield chunk
