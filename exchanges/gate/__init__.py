"""
Gate.io Adapter

Gate's USDT futures contract list includes the current funding rate and the
next application time of every contract.

API Documentation:
    https://www.gate.io/docs/developers/apiv4/#list-all-futures-contracts

Endpoint Used:
    GET /api/v4/futures/usdt/contracts

Response Format:
    [
      {
        "name": "BTC_USDT",
        "funding_rate": "0.000113",
        "funding_next_apply": 1610035200,
        "in_delisting": false
      }
    ]

Notes:
    - funding_next_apply is in SECONDS, unlike most exchanges
"""

from typing import Any, Dict

from core.exchange_interface import SinglePhaseAdapter
from core.schemas import NormalizedFundingRate


class GateAdapter(SinglePhaseAdapter):
    """Gate.io USDT-settled perpetuals via /futures/usdt/contracts."""

    name = "gate"
    display_name = "Gate.io"
    api_url = "https://api.gateio.ws"
    ws_url = "wss://fx-ws.gateio.ws/v4/ws/usdt"
    color = "#7c3aed"

    endpoint = "https://api.gateio.ws/api/v4/futures/usdt/contracts"

    def parse(self, raw: Dict[str, Any]) -> NormalizedFundingRate:
        return self.build_record(
            raw.get("name"),
            raw.get("funding_rate"),
            raw.get("funding_next_apply"),
        )
