"""
Hot Funding Rate Alerts

Subscribes to the UpdatePublisher and watches each latest-rates snapshot for
rates whose magnitude reaches the hot threshold (0.2% by default).

Two outputs:
    - A digest of the hottest rates, at most once per alert_interval_seconds.
      Positive and negative rates are marked differently and shown as
      percentages with three decimals.
    - Custom AlertRule matches, evaluated on every snapshot.

Both are logged. Sending them anywhere (chat bots, email) is left to a
transport that subscribes to this monitor's output.
"""

import time
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from core.logging import get_logger
from core.schemas import AlertRule, FundingRateWithExchange, TriggeredAlert


CONDITIONS: Dict[str, Callable[[Decimal, Decimal], bool]] = {
    "gt": lambda rate, threshold: rate > threshold,
    "lt": lambda rate, threshold: rate < threshold,
    "gte": lambda rate, threshold: rate >= threshold,
    "lte": lambda rate, threshold: rate <= threshold,
}


def format_rate(rate: Decimal) -> str:
    """0.0025 -> '+0.250%', -0.003 -> '-0.300%'"""
    percent = rate * 100
    sign = "+" if rate > 0 else ""
    return f"{sign}{percent:.3f}%"


class HotRateAlertMonitor:
    """
    Hot-rate digest builder and custom alert evaluator.

    Attributes:
        threshold: Absolute rate at which a rate is hot
        interval: Minimum seconds between two digests
        top_n: Rates listed in one digest
        rules: Active custom alert rules
        last_digest: Text of the most recent digest
    """

    def __init__(
        self,
        threshold: Optional[float] = None,
        interval: Optional[float] = None,
        top_n: Optional[int] = None,
        rules: Optional[List[AlertRule]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        from core.config import settings

        self.threshold = Decimal(str(threshold if threshold is not None else settings.hot_rate_threshold))
        self.interval = interval if interval is not None else settings.alert_interval_seconds
        self.top_n = top_n if top_n is not None else settings.alert_top_n
        self.rules: List[AlertRule] = list(rules or [])
        self.last_digest: Optional[str] = None

        self._clock = clock
        self._last_sent: Optional[float] = None
        self._logger = get_logger(__name__)

    def attach(self, publisher) -> Callable[[], None]:
        """Subscribe to a publisher. Returns the unsubscribe function."""
        return publisher.subscribe(self.handle_update)

    def add_rule(self, rule: AlertRule) -> None:
        self.rules.append(rule)

    # ============================================
    # Event Handling
    # ============================================

    async def handle_update(self, event: Dict[str, Any]) -> None:
        """Publisher callback for funding-rates-update events."""
        if event.get("type") != "funding-rates-update":
            return
        rates = [FundingRateWithExchange.model_validate(row) for row in event.get("data", [])]
        self.process(rates)

    def process(self, rates: List[FundingRateWithExchange]) -> Optional[str]:
        """
        Evaluate rules and, when due, build a hot-rate digest.

        Returns:
            The digest text if one was produced, otherwise None
        """
        for alert in self.evaluate_rules(rates):
            self._logger.info(
                f"Alert rule {alert.rule.id} triggered: {alert.rate.symbol} "
                f"{format_rate(alert.rate.funding_rate)} ({alert.rule.condition} {alert.rule.threshold})"
            )

        hot = self.select_hot(rates)
        if not hot:
            return None

        now = self._clock()
        if self._last_sent is not None and now - self._last_sent < self.interval:
            return None

        digest = self.format_digest(hot)
        self._last_sent = now
        self.last_digest = digest
        self._logger.info(f"Hot funding rate digest prepared:\n{digest}")
        return digest

    # ============================================
    # Selection & Formatting
    # ============================================

    def select_hot(self, rates: List[FundingRateWithExchange]) -> List[FundingRateWithExchange]:
        """Rates with abs(rate) >= threshold, largest magnitude first."""
        hot = [r for r in rates if abs(r.funding_rate) >= self.threshold]
        hot.sort(key=lambda r: abs(r.funding_rate), reverse=True)
        return hot

    def format_digest(self, hot: List[FundingRateWithExchange]) -> str:
        """
        Example:
            Funding Alert 2024-01-01 12:00 UTC

            [+] Bybit - BTCUSDT: +0.250%
            [-] Gate.io - ETHUSDT: -0.300%

            ... and 3 more
            Total hot symbols: 5
        """
        stamp = time.strftime("%Y-%m-%d %H:%M", time.gmtime())
        lines = [f"Funding Alert {stamp} UTC", ""]

        for rate in hot[: self.top_n]:
            marker = "[+]" if rate.funding_rate > 0 else "[-]"
            venue = rate.exchange.display_name if rate.exchange else f"exchange {rate.exchange_id}"
            lines.append(f"{marker} {venue} - {rate.symbol}: {format_rate(rate.funding_rate)}")

        if len(hot) > self.top_n:
            lines.append("")
            lines.append(f"... and {len(hot) - self.top_n} more")

        lines.append(f"Total hot symbols: {len(hot)}")
        return "\n".join(lines)

    def evaluate_rules(self, rates: List[FundingRateWithExchange]) -> List[TriggeredAlert]:
        """Every (active rule, rate) pair where the rule matches."""
        triggered = []
        for rule in self.rules:
            if not rule.is_active:
                continue
            check = CONDITIONS[rule.condition]
            for rate in rates:
                if rule.exchange_id is not None and rate.exchange_id != rule.exchange_id:
                    continue
                if rule.symbol and rate.symbol != rule.symbol:
                    continue
                if check(rate.funding_rate, rule.threshold):
                    triggered.append(TriggeredAlert(rule=rule, rate=rate))
        return triggered
