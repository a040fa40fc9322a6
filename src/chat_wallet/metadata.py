"""Token metadata lookup using DexScreener's public search API via httpx."""

from __future__ import annotations

import logging

import httpx

from chat_wallet.errors import LookupUnavailable
from chat_wallet.storage.models import TokenInfo

logger = logging.getLogger("chat_wallet.metadata")

DEXSCREENER_API_BASE = "https://api.dexscreener.com"


class TokenLookup:
    """Free-text token search. Only the first matching pair is used."""

    def __init__(
        self,
        base_url: str = DEXSCREENER_API_BASE,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def search(self, query: str) -> TokenInfo | None:
        """Return the first match for *query*, or ``None`` if nothing matched.

        Raises ``LookupUnavailable`` if the API can't be reached or answers
        with something unexpected.
        """
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                resp = await client.get(
                    f"{self.base_url}/latest/dex/search", params={"q": query}
                )
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(f"DexScreener lookup for '{query}' failed: {exc}")
            raise LookupUnavailable(str(exc)) from exc

        pairs = data.get("pairs") if isinstance(data, dict) else None
        if not pairs:
            return None

        first = pairs[0]
        base_token = first.get("baseToken") or {}
        if not base_token.get("address"):
            raise LookupUnavailable(f"Malformed pair for '{query}'")
        price = first.get("priceUsd")
        return TokenInfo(
            symbol=str(base_token.get("symbol", "?")),
            price_usd=str(price) if price is not None else None,
            contract_address=base_token["address"],
        )
