"""
MEXC Adapter

MEXC contract API, all perpetual funding rates in one call.

API Documentation:
    https://mexcdevelop.github.io/apidocs/contract_v1_en/

Endpoint Used:
    GET https://contract.mexc.com/api/v1/contract/funding_rate

Response Format:
    {
      "success": true,
      "code": 0,
      "data": [
        {"symbol": "BTC_USDT", "fundingRate": 0.0001, "nextSettleTime": 1700006400000, ...}
      ]
    }

Notes:
    - fundingRate is a JSON number, not a string
"""

from typing import Any, Dict, List

from core.exceptions import FetchError
from core.exchange_interface import SinglePhaseAdapter
from core.schemas import NormalizedFundingRate


class MEXCAdapter(SinglePhaseAdapter):
    """MEXC perpetuals via /api/v1/contract/funding_rate."""

    name = "mexc"
    display_name = "MEXC"
    api_url = "https://contract.mexc.com"
    ws_url = "wss://contract.mexc.com/edge"
    color = "#ef4444"

    endpoint = "https://contract.mexc.com/api/v1/contract/funding_rate"

    def extract_records(self, payload: Any) -> List[Dict[str, Any]]:
        if not isinstance(payload, dict) or not payload.get("success", False):
            error_msg = payload.get("message", "Unknown error") if isinstance(payload, dict) else payload
            raise FetchError(f"MEXC API error: {error_msg}")
        return payload.get("data") or []

    def parse(self, raw: Dict[str, Any]) -> NormalizedFundingRate:
        return self.build_record(
            raw.get("symbol"),
            raw.get("fundingRate"),
            raw.get("nextSettleTime"),
        )
