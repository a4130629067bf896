"""Crypto prices straight from CoinGecko; no model call."""

from pydantic import Field

from marketdesk.agent.entities import EntityDescriptor
from marketdesk.widgets.base import TaskFailure, WidgetContext, WidgetModel, WidgetOutput, source

COINS = ["bitcoin", "ethereum"]


class CoinPrice(WidgetModel):
    id: str
    name: str
    price: float
    change24h: float = 0.0


class CryptoData(WidgetOutput):
    summary: str
    prices: list[CoinPrice] = Field(default_factory=list)


async def run(entity: EntityDescriptor, ctx: WidgetContext) -> CryptoData:
    result = await ctx.providers.crypto.prices(COINS)
    if not result.usable or not result.value:
        raise TaskFailure(result.message or "No crypto prices available")

    prices = [
        CoinPrice(
            id=coin_id,
            name=coin_id.capitalize(),
            price=values["usd"],
            change24h=values["usd_24h_change"],
        )
        for coin_id, values in result.value.items()
    ]
    names = ", ".join(p.name for p in prices)

    return CryptoData(
        summary=f"Current cryptocurrency prices for {names}",
        prices=prices,
        sources=[source(ctx, "CoinGecko", "https://www.coingecko.com")],
        last_updated=ctx.timestamp(),
    )
