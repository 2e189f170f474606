"""Prometheus-style metrics for the blackjack bot."""

import asyncio
import logging
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

# Histograms keep a sliding window of observations
MAX_OBSERVATIONS = 1000

METRIC_HELP = {
    "bot_commands_executed_total": "Chat commands handled, by command",
    "bot_messages_sent_total": "Outbound chat messages, by delivery result",
    "bot_message_send_duration_seconds": "Time spent delivering one chat message",
    "blackjack_rounds_finished_total": "Rounds played to the end",
    "blackjack_round_players": "Players seated per finished round",
    "blackjack_player_outcomes_total": "Player results, by outcome",
    "blackjack_tables": "Tables known to the bot",
    "blackjack_tables_in_play": "Tables with cards dealt",
    "blackjack_seated_players": "Players seated across all tables",
}

SeriesKey = Tuple[str, str]  # (metric name, rendered labels)


def _render_labels(labels: Optional[Dict]) -> str:
    if not labels:
        return ""
    return "{" + ",".join(f'{k}="{v}"' for k, v in sorted(labels.items())) + "}"


class MetricsCollector:
    """In-process counters, gauges and histograms rendered as Prometheus text."""

    def __init__(self):
        self._counters: Dict[SeriesKey, int] = defaultdict(int)
        self._gauges: Dict[SeriesKey, float] = {}
        self._histograms: Dict[SeriesKey, List[float]] = defaultdict(list)
        self._lock = asyncio.Lock()

    async def increment_counter(self, name: str, value: int = 1, labels: Optional[Dict] = None):
        async with self._lock:
            self._counters[(name, _render_labels(labels))] += value

    async def set_gauge(self, name: str, value: float, labels: Optional[Dict] = None):
        async with self._lock:
            self._gauges[(name, _render_labels(labels))] = value

    async def observe_histogram(self, name: str, value: float, labels: Optional[Dict] = None):
        async with self._lock:
            observations = self._histograms[(name, _render_labels(labels))]
            observations.append(value)
            if len(observations) > MAX_OBSERVATIONS:
                del observations[:-MAX_OBSERVATIONS]

    async def get_metrics(self) -> str:
        """
        Render every series in the Prometheus text format.

        Series are grouped by metric name so each family gets a single
        HELP/TYPE header. Histograms are reported as count and sum only.
        """
        async with self._lock:
            families: Dict[str, Tuple[str, List[str]]] = {}

            def family(name: str, kind: str) -> List[str]:
                return families.setdefault(name, (kind, []))[1]

            for (name, labels), value in self._counters.items():
                family(name, "counter").append(f"{name}{labels} {value}")
            for (name, labels), value in self._gauges.items():
                family(name, "gauge").append(f"{name}{labels} {value}")
            for (name, labels), values in self._histograms.items():
                samples = family(name, "histogram")
                samples.append(f"{name}_count{labels} {len(values)}")
                samples.append(f"{name}_sum{labels} {sum(values)}")

            lines = []
            for name in sorted(families):
                kind, samples = families[name]
                if name in METRIC_HELP:
                    lines.append(f"# HELP {name} {METRIC_HELP[name]}")
                lines.append(f"# TYPE {name} {kind}")
                lines.extend(samples)
            return "\n".join(lines)

    async def reset(self):
        async with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._histograms.clear()
        logger.info("All metrics reset")


# Global metrics collector
metrics = MetricsCollector()


async def track_command_executed(command: str):
    await metrics.increment_counter("bot_commands_executed_total", labels={"command": command})


async def track_message_sent(success: bool, duration: float):
    """Track an outbound chat message and how long delivery took."""
    await metrics.increment_counter(
        "bot_messages_sent_total",
        labels={"success": str(success).lower()}
    )
    await metrics.observe_histogram("bot_message_send_duration_seconds", duration)


async def track_round_finished(player_count: int):
    await metrics.increment_counter("blackjack_rounds_finished_total")
    await metrics.observe_histogram("blackjack_round_players", player_count)


async def track_player_outcome(outcome: str):
    await metrics.increment_counter("blackjack_player_outcomes_total", labels={"outcome": outcome})
