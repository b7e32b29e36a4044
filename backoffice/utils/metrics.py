"""
Metrics Collection for Recurring Task Generation.

Counters and timers for generation runs.
"""

import time
from typing import Dict, Any, Callable
from collections import defaultdict
from datetime import datetime
import functools
import threading


class MetricsCollector:
    """Collects and manages metrics for the recurring task generator."""

    def __init__(self):
        self.metrics = defaultdict(int)
        self.timers = defaultdict(float)
        self.lock = threading.Lock()

        self.metrics["recurring_tasks_generated_total"] = 0
        self.metrics["recurring_rules_processed_total"] = 0
        self.metrics["recurring_generation_errors_total"] = 0
        self.metrics["recurring_rules_deactivated_total"] = 0
        self.metrics["recurring_generation_runs_total"] = 0

    def increment_counter(self, metric_name: str, value: int = 1):
        """Increment a counter metric."""
        with self.lock:
            self.metrics[metric_name] += value

    def record_timer(self, metric_name: str, duration: float):
        """Record a timing metric."""
        with self.lock:
            self.timers[metric_name] += duration

    def get_metrics(self) -> Dict[str, Any]:
        """Get current metrics values."""
        with self.lock:
            return {
                "counters": dict(self.metrics),
                "timers": dict(self.timers),
                "timestamp": datetime.utcnow().isoformat()
            }

    def reset(self):
        with self.lock:
            for name in self.metrics:
                self.metrics[name] = 0
            self.timers.clear()

    def tasks_generated(self, count: int = 1):
        self.increment_counter("recurring_tasks_generated_total", count)

    def rule_processed(self):
        self.increment_counter("recurring_rules_processed_total")

    def generation_error(self):
        self.increment_counter("recurring_generation_errors_total")

    def rule_deactivated(self):
        self.increment_counter("recurring_rules_deactivated_total")

    def run_completed(self):
        self.increment_counter("recurring_generation_runs_total")

    def time_operation(self, metric_name: str) -> Callable:
        """Decorator recording the wall time of each call, successful or not."""
        def decorator(func):
            @functools.wraps(func)
            def wrapper(*args, **kwargs):
                start_time = time.time()
                try:
                    return func(*args, **kwargs)
                finally:
                    self.record_timer(metric_name, time.time() - start_time)
            return wrapper
        return decorator


# Global metrics instance
metrics_collector = MetricsCollector()
