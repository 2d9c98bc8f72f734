from statistics import mean
from typing import Any, Dict, List, Optional

from resource_cache.logger import get_logger

logger = get_logger(__name__)


class MetricsCollector:
    """
    Сбор и экспорт метрик симуляции: обращения к кешу, вытеснения,
    завершения ресурсов, вызовы источника, переходы и состояния экрана.
    """

    def __init__(self):
        # ---- счётчики событий ----
        self.hits: int = 0
        self.creations: int = 0
        self.evictions: int = 0
        self.sweeps: int = 0

        # ---- «сырые» данные ----
        self.events: List[Dict[str, Any]] = []
        self.lookups: List[Dict[str, Any]] = []
        self.settlements: List[Dict[str, Any]] = []
        self.source_calls: List[Dict[str, Any]] = []
        self.transitions: List[Dict[str, Any]] = []
        self.view_changes: List[Dict[str, Any]] = []
        self.busy_changes: List[Dict[str, Any]] = []

    # ------------------------------------------------------------------ #
    #   Методы‑регистраторы                                              #
    # ------------------------------------------------------------------ #
    def record_event(self, time: float, event_type: str, key: Any, cache_size: int):
        if event_type == "evict":
            self.evictions += 1
        self.events.append(
            {
                "time": time,
                "event": event_type,
                "key": str(key) if key is not None else None,
                "cache_size": cache_size,
            }
        )

    def record_lookup(self, time: float, raw_key: str, key: str, outcome: str, cache_size: int):
        if outcome == "create":
            self.creations += 1
        else:
            self.hits += 1
        self.lookups.append({"time": time, "raw_key": raw_key, "key": key, "type": outcome})
        self.record_event(time, outcome, key, cache_size)

    def record_sweep(self, time: float, evicted: int, cache_size: int):
        self.sweeps += 1
        self.record_event(time, "sweep", None, cache_size)
        self.events[-1]["evicted"] = evicted

    def record_settlement(self, key: Optional[str], start: float, finish: float, outcome: str):
        self.settlements.append(
            {
                "key": key,
                "start": start,
                "finish": finish,
                "latency": finish - start,
                "outcome": outcome,
            }
        )

    def record_source_call(self, name: str, start: float, finish: float, found: bool):
        self.source_calls.append(
            {
                "name": name,
                "start": start,
                "finish": finish,
                "latency": finish - start,
                "found": found,
            }
        )

    def record_transition(self, start: float, finish: float, outcome: str, busy_shown: bool):
        self.transitions.append(
            {
                "start": start,
                "finish": finish,
                "outcome": outcome,
                "busy_shown": busy_shown,
            }
        )

    def record_view(self, time: float, state: str, query: str):
        self.view_changes.append({"time": time, "state": state, "query": query})

    def record_busy(self, time: float, busy: bool):
        self.busy_changes.append({"time": time, "busy": busy})

    # ------------------------------------------------------------------ #
    #   Сводка результатов                                               #
    # ------------------------------------------------------------------ #
    def collect_from(self, simulator) -> None:
        self.record_event(simulator.env.now, "final_cache_size", None, len(simulator.cache))

    def summary(self) -> dict:
        total = self.hits + self.creations
        resolved = [s["latency"] for s in self.settlements if s["outcome"] == "resolved"]
        rejected = [s for s in self.settlements if s["outcome"] == "rejected"]

        outcomes: Dict[str, int] = {}
        for rec in self.transitions:
            outcomes.setdefault(rec["outcome"], 0)
            outcomes[rec["outcome"]] += 1

        data = {
            # агрегаты
            "total_lookups": total,
            "hits": self.hits,
            "creations": self.creations,
            "hit_rate": self.hits / total if total else 0.0,
            "evictions": self.evictions,
            "sweeps": self.sweeps,
            "resolved": len(resolved),
            "rejected": len(rejected),
            "avg_resolve_time": mean(resolved) if resolved else None,
            "source_calls": len(self.source_calls),
            "transitions": len(self.transitions),
            "transition_outcomes": outcomes,
            "busy_shown": sum(1 for t in self.transitions if t["busy_shown"]),
            # подробные логи
            "events": self.events,
            "lookups_detail": self.lookups,
            "settlements_detail": self.settlements,
            "source_calls_detail": self.source_calls,
            "transitions_detail": self.transitions,
            "view_changes": self.view_changes,
            "busy_changes": self.busy_changes,
        }
        return data
