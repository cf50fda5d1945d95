"""
BitMart Adapter

BitMart futures contract details, which include funding data per contract.

API Documentation:
    https://developer-pro.bitmart.com/en/futuresv2/#get-contract-details

Endpoint Used:
    GET https://api-cloud-v2.bitmart.com/contract/public/details

Response Format:
    {
      "code": 1000,
      "message": "Ok",
      "data": {
        "symbols": [
          {"symbol": "BTCUSDT", "funding_rate": "0.0000561", "funding_time": 1700006400000, ...}
        ]
      }
    }

Notes:
    - Older payloads name the settlement field next_funding_time; both are accepted
"""

from typing import Any, Dict, List

from core.exceptions import FetchError
from core.exchange_interface import SinglePhaseAdapter
from core.schemas import NormalizedFundingRate


class BitmartAdapter(SinglePhaseAdapter):
    """BitMart perpetuals via /contract/public/details."""

    name = "bitmart"
    display_name = "Bitmart"
    api_url = "https://api-cloud-v2.bitmart.com"
    color = "#8b5cf6"

    endpoint = "https://api-cloud-v2.bitmart.com/contract/public/details"

    def extract_records(self, payload: Any) -> List[Dict[str, Any]]:
        if not isinstance(payload, dict) or payload.get("code") != 1000:
            error_msg = payload.get("message", "Unknown error") if isinstance(payload, dict) else payload
            raise FetchError(f"Bitmart API error: {error_msg}")
        return (payload.get("data") or {}).get("symbols") or []

    def parse(self, raw: Dict[str, Any]) -> NormalizedFundingRate:
        settlement = raw.get("next_funding_time") or raw.get("funding_time")
        return self.build_record(raw.get("symbol"), raw.get("funding_rate"), settlement)
