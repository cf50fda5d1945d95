"""
BingX Adapter

BingX perpetual swap v2 premium index.

API Documentation:
    https://bingx-api.github.io/docs/#/en-us/swapV2/market-api.html

Endpoint Used:
    GET /openApi/swap/v2/quote/premiumIndex

Response Format:
    {
      "code": 0,
      "msg": "",
      "data": [
        {"symbol": "BTC-USDT", "lastFundingRate": "0.00010000", "nextFundingTime": 1700006400000, ...}
      ]
    }
"""

from typing import Any, Dict, List

from core.exceptions import FetchError
from core.exchange_interface import SinglePhaseAdapter
from core.schemas import NormalizedFundingRate


class BingXAdapter(SinglePhaseAdapter):
    """BingX perpetual swaps via /openApi/swap/v2/quote/premiumIndex."""

    name = "bingx"
    display_name = "BingX"
    api_url = "https://open-api.bingx.com"
    color = "#06b6d4"

    endpoint = "https://open-api.bingx.com/openApi/swap/v2/quote/premiumIndex"

    def extract_records(self, payload: Any) -> List[Dict[str, Any]]:
        if not isinstance(payload, dict) or payload.get("code") != 0:
            error_msg = payload.get("msg", "Unknown error") if isinstance(payload, dict) else payload
            raise FetchError(f"BingX API error: {error_msg}")
        return payload.get("data") or []

    def parse(self, raw: Dict[str, Any]) -> NormalizedFundingRate:
        return self.build_record(
            raw.get("symbol"),
            raw.get("lastFundingRate"),
            raw.get("nextFundingTime"),
        )
