"""
Block height and block hash source.

Settlement mixes the oracle's secret with the hash of the block a bet was
placed in. That hash does not exist yet when the bet is accepted: the
current height is the height of the block being built, and only blocks
below it have a hash. Hashes older than the lookback horizon are forgotten.
"""

import hashlib
import logging
import secrets
from abc import ABC, abstractmethod

from sqlalchemy import select, func

from fairdice_be.models import db, ChainBlock

logger = logging.getLogger(__name__)

DEFAULT_BLOCKHASH_HORIZON = 256


class BlockSource(ABC):
    """Height and historical block hashes as seen by the hosting ledger."""

    @abstractmethod
    def current_height(self) -> int:
        ...

    @abstractmethod
    def block_hash(self, height: int):
        """Hex hash of a past block, or None outside the lookback horizon."""
        ...


class DatabaseBlockSource(BlockSource):
    """Block source backed by the ``chain_block`` table."""

    def __init__(self, horizon: int = DEFAULT_BLOCKHASH_HORIZON):
        self.horizon = horizon

    def _head(self):
        return db.session.scalar(select(ChainBlock).order_by(ChainBlock.height.desc()).limit(1))

    def current_height(self) -> int:
        latest = db.session.scalar(select(func.max(ChainBlock.height)))
        return 0 if latest is None else latest + 1

    def block_hash(self, height: int):
        current = self.current_height()
        if height >= current or height < current - self.horizon or height < 0:
            return None
        block = db.session.get(ChainBlock, height)
        return block.block_hash if block else None

    def mine_block(self) -> ChainBlock:
        """Seals the block being built. Does not commit."""
        head = self._head()
        height = 0 if head is None else head.height + 1
        parent = bytes.fromhex(head.block_hash) if head else b'\x00' * 32
        block_hash = hashlib.sha256(parent + height.to_bytes(8, 'big') + secrets.token_bytes(32)).hexdigest()

        block = ChainBlock(height=height, block_hash=block_hash)
        db.session.add(block)
        db.session.flush()
        logger.debug(f"Mined block {height} ({block_hash[:16]}..)")
        return block

    def mine_blocks(self, count: int) -> list:
        if count <= 0:
            raise ValueError("Block count must be positive")
        return [self.mine_block() for _ in range(count)]
