"""
Bitget Adapter

USDT-M perpetuals (product type "umcbl").

Endpoint Used:
    GET /api/mix/v1/market/current-fundRate?productType=umcbl

Response Format:
    {
      "code": "00000",
      "msg": "success",
      "data": [
        {"symbol": "BTCUSDT_UMCBL", "fundingRate": "0.000068", "nextSettleTime": "1700006400000"}
      ]
    }

Notes:
    - Symbols carry a product-type suffix ("_UMCBL") that is dropped
"""

from typing import Any, Dict, List

from core.exceptions import FetchError
from core.exchange_interface import SinglePhaseAdapter
from core.schemas import NormalizedFundingRate


class BitgetAdapter(SinglePhaseAdapter):
    """Bitget USDT-M perpetuals via current-fundRate."""

    name = "bitget"
    display_name = "Bitget"
    api_url = "https://api.bitget.com"
    ws_url = "wss://ws.bitget.com/mix/v1/stream"
    color = "#f59e0b"

    endpoint = "https://api.bitget.com/api/mix/v1/market/current-fundRate"
    params = {"productType": "umcbl"}

    def extract_records(self, payload: Any) -> List[Dict[str, Any]]:
        if not isinstance(payload, dict) or payload.get("code") != "00000":
            error_msg = payload.get("msg", "Unknown error") if isinstance(payload, dict) else payload
            raise FetchError(f"Bitget API error: {error_msg}")
        return payload.get("data") or []

    def canonical_symbol(self, symbol: str) -> str:
        # BTCUSDT_UMCBL -> BTCUSDT
        return super().canonical_symbol(symbol.split("_")[0])

    def parse(self, raw: Dict[str, Any]) -> NormalizedFundingRate:
        return self.build_record(
            raw.get("symbol"),
            raw.get("fundingRate"),
            raw.get("nextSettleTime"),
        )
