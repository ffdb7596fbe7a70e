import structlog
import logging
import sys
from typing import Dict, Any, List, Optional
from datetime import datetime, timezone
from dataclasses import dataclass
import os


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    service_name: str = "intentui"
) -> None:
    """Setup structured logging configuration"""

    # Configure Python logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO)
    )

    # Processors for structlog
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        add_service_context,
    ]

    # Add appropriate renderer based on format
    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(
        service=service_name,
        environment=os.getenv("ENVIRONMENT", "development"),
    )


def add_service_context(logger: logging.Logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add session context to all log entries"""

    if "timestamp" not in event_dict:
        event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()

    session_id = structlog.contextvars.get_contextvars().get("session_id")
    if session_id:
        event_dict["session_id"] = session_id

    return event_dict


class UILogger:
    """Specialized logger for intent and reconciliation events"""

    def __init__(self, name: str):
        self.logger = structlog.get_logger(name)

    def log_intent(
        self,
        intent_id: str,
        intent_type: str,
        affected_ids: List[str],
        raw_input: Optional[str] = None
    ):
        """Log a recorded intent"""

        self.logger.info(
            "intent_recorded",
            intent_id=intent_id,
            intent_type=intent_type,
            affected_ids=affected_ids,
            input_length=len(raw_input) if raw_input else 0
        )

    def log_dispatch(
        self,
        version: int,
        added: List[str],
        removed: List[str],
        updated: List[str],
        visibility_changed: List[str]
    ):
        """Log an applied edit"""

        self.logger.debug(
            "edit_dispatched",
            version=version,
            added=added,
            removed=removed,
            updated=updated,
            visibility_changed=visibility_changed
        )

    def log_policy_decision(
        self,
        policy_name: str,
        intent_type: str,
        notes: str,
        duration_ms: Optional[float] = None,
        success: bool = True,
        error: Optional[str] = None
    ):
        """Log the outcome of a decision policy call"""

        self.logger.info(
            "policy_decision",
            policy_name=policy_name,
            intent_type=intent_type,
            notes=notes,
            duration_ms=duration_ms,
            success=success,
            error=error
        )

    def log_fact_update(
        self,
        action: str,
        keys: List[str],
        details: Optional[Dict[str, Any]] = None
    ):
        """Log fact store writes (values are never logged)"""

        self.logger.info(
            "fact_update",
            action=action,
            keys=keys,
            details=details or {}
        )

    def log_guardrail(self, dialog_id: str, action: str, stage: str):
        """Log guarded destructive-action transitions"""

        self.logger.info(
            "guardrail",
            dialog_id=dialog_id,
            action=action,
            stage=stage
        )


# Global logger instance
ui_logger = UILogger("intentui")


@dataclass
class LatencyStats:
    """Running latency aggregate for one operation"""
    count: int = 0
    total_ms: float = 0.0
    min_ms: float = float("inf")
    max_ms: float = 0.0

    def add(self, duration_ms: float):
        self.count += 1
        self.total_ms += duration_ms
        self.min_ms = min(self.min_ms, duration_ms)
        self.max_ms = max(self.max_ms, duration_ms)

    def summary(self) -> Dict[str, float]:
        return {
            "count": self.count,
            "avg": self.total_ms / self.count if self.count else 0,
            "min": self.min_ms if self.count else 0,
            "max": self.max_ms,
        }


class MetricsCollector:
    """In-process latency and counter metrics, mirrored to the log"""

    def __init__(self):
        self.latencies: Dict[str, LatencyStats] = {}
        self.counters: Dict[str, int] = {}

    def record_latency(self, operation: str, duration_ms: float, tags: Optional[Dict[str, str]] = None):
        self.latencies.setdefault(operation, LatencyStats()).add(duration_ms)
        ui_logger.logger.debug("metric", metric_type="latency", operation=operation,
                               duration_ms=round(duration_ms, 3), tags=tags or {})

    def increment_counter(self, name: str, value: int = 1, tags: Optional[Dict[str, str]] = None):
        self.counters[name] = self.counters.get(name, 0) + value
        ui_logger.logger.debug("metric", metric_type="counter", name=name, value=value, tags=tags or {})

    def get_metrics_summary(self) -> Dict[str, Any]:
        """Latencies keyed as latency.<operation>, counters by name"""

        summary: Dict[str, Any] = {f"latency.{op}": stats.summary() for op, stats in self.latencies.items()}
        summary.update(self.counters)
        return summary

    def reset(self):
        self.latencies.clear()
        self.counters.clear()


# Global metrics collector
metrics = MetricsCollector()
