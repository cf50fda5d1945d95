"""
Binance Futures Adapter

Binance USD-M futures publish mark price, index price and funding data for
every symbol on one endpoint.

API Documentation:
    https://binance-docs.github.io/apidocs/futures/en/

Endpoint Used:
    GET /fapi/v1/premiumIndex

Response Format:
    [
      {
        "symbol": "BTCUSDT",
        "markPrice": "11793.63104562",
        "lastFundingRate": "0.00038246",
        "nextFundingTime": 1597392000000,
        "time": 1597370495002
      }
    ]

Notes:
    - Delivery contracts appear with nextFundingTime = 0 and are rejected by parse()
    - Timestamps are milliseconds
"""

from typing import Any, Dict

from core.exchange_interface import SinglePhaseAdapter
from core.schemas import NormalizedFundingRate


class BinanceAdapter(SinglePhaseAdapter):
    """Binance USD-M perpetuals via /fapi/v1/premiumIndex."""

    name = "binance"
    display_name = "Binance"
    api_url = "https://fapi.binance.com"
    ws_url = "wss://fstream.binance.com/ws"
    color = "#f0b90b"

    endpoint = "https://fapi.binance.com/fapi/v1/premiumIndex"

    def parse(self, raw: Dict[str, Any]) -> NormalizedFundingRate:
        return self.build_record(
            raw.get("symbol"),
            raw.get("lastFundingRate"),
            raw.get("nextFundingTime"),
        )
