"""
HTX (Huobi) Adapter

USDT-margined swaps, batch funding rate endpoint.

API Documentation:
    https://www.htx.com/en-us/opend/newApiPages/?id=8cb89359-77b5-11ed-9966-0242ac110003

Endpoint Used:
    GET https://api.hbdm.com/linear-swap-api/v1/swap_batch_funding_rate

Response Format:
    {
      "status": "ok",
      "data": [
        {
          "contract_code": "BTC-USDT",
          "funding_rate": "0.000100000000000000",
          "funding_time": "1603872000000",
          "next_funding_time": null
        }
      ],
      "ts": 1603866304635
    }

Notes:
    - funding_time is the settlement the current rate applies to; next_funding_time
      is used when HTX fills it in
    - status != "ok" carries err_code / err_msg
"""

from typing import Any, Dict, List

from core.exceptions import FetchError
from core.exchange_interface import SinglePhaseAdapter
from core.schemas import NormalizedFundingRate


class HTXAdapter(SinglePhaseAdapter):
    """HTX linear swaps via swap_batch_funding_rate."""

    name = "htx"
    display_name = "HTX"
    api_url = "https://api.hbdm.com"
    ws_url = "wss://api.hbdm.com/linear-swap-ws"
    color = "#2e7bff"

    endpoint = "https://api.hbdm.com/linear-swap-api/v1/swap_batch_funding_rate"

    def extract_records(self, payload: Any) -> List[Dict[str, Any]]:
        if not isinstance(payload, dict) or payload.get("status") != "ok":
            error_msg = payload.get("err_msg", "Unknown error") if isinstance(payload, dict) else payload
            raise FetchError(f"HTX API error: {error_msg}")
        return payload.get("data") or []

    def parse(self, raw: Dict[str, Any]) -> NormalizedFundingRate:
        settlement = raw.get("next_funding_time") or raw.get("funding_time")
        return self.build_record(raw.get("contract_code"), raw.get("funding_rate"), settlement)
