"""Pool snapshots as published by a Midgard-style indexer."""

import logging
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from swapquote.amounts import div18
from swapquote.models import Pool

logger = logging.getLogger(__name__)

RUNE_POOL_ASSET = "THOR.RUNE"
BTC_POOL_ASSET = "BTC.BTC"


class PoolPayload(BaseModel):
    """One entry of the ``v2/pools`` response. Extra fields are ignored."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    asset: str
    asset_price: Decimal = Field(..., alias="assetPrice")
    asset_price_usd: Decimal = Field(..., alias="assetPriceUSD")

    def to_pool(self) -> Pool:
        return Pool(asset=self.asset, price=self.asset_price, price_usd=self.asset_price_usd)


_pools_adapter = TypeAdapter(list[PoolPayload])


def parse_pools(data: object) -> list[Pool]:
    """Validate a pools response and convert it to Pool snapshots."""
    return [payload.to_pool() for payload in _pools_adapter.validate_python(data)]


def find_pool(pools: list[Pool], mainnet_code: str, token_code: str) -> Optional[Pool]:
    """Find the pool for ``CHAIN.TOKEN``, ignoring the contract suffix.

    RUNE has no pool of its own since it is the reference asset. A
    synthetic pool priced at 1 is derived from the BTC pool's USD rate.
    """
    if mainnet_code == "THOR" and token_code == "RUNE":
        btc_pool = next((p for p in pools if p.asset == BTC_POOL_ASSET), None)
        if btc_pool is None:
            return None
        return Pool(
            asset=RUNE_POOL_ASSET,
            price=Decimal(1),
            price_usd=div18(btc_pool.price_usd, btc_pool.price),
        )

    target = f"{mainnet_code}.{token_code}"
    for pool in pools:
        if pool.chain_asset == target:
            return pool
    return None
