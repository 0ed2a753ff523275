from datetime import datetime, timezone
from typing import Dict, Any
from dataclasses import dataclass, asdict

import psutil

from domain.service.pending_delivery_registry import PendingDeliveryRegistry
from domain.service.time_gate import TimeGate
from infrastructure.monitoring.logging import StructuredLogger


@dataclass
class HealthStatus:
    status: str
    details: Dict[str, Any]
    timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class HealthChecker:
    def __init__(self, registry: PendingDeliveryRegistry, time_gate: TimeGate):
        self.logger = StructuredLogger("health")
        self.registry = registry
        self.time_gate = time_gate
        self.checks = {
            'pending_deliveries': self.check_pending_deliveries,
            'active_window': self.check_active_window,
            'memory': self.check_memory
        }

    def check_pending_deliveries(self) -> Dict[str, Any]:
        return {"status": "healthy", "staged": len(self.registry)}

    def check_active_window(self) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        window = self.time_gate.window
        return {
            "status": "healthy",
            "active": self.time_gate.is_active(now),
            "window": f"{window.start.strftime('%H:%M')}-{window.end.strftime('%H:%M')} {window.timezone}",
            "local_time": self.time_gate.local_time(now).strftime('%H:%M:%S')
        }

    def check_memory(self) -> Dict[str, Any]:
        process = psutil.Process()
        memory_info = process.memory_info()

        return {
            "status": "healthy",
            "memory_usage_mb": round(memory_info.rss / 1024 / 1024, 2),
            "memory_percent": round(process.memory_percent(), 2)
        }

    def perform_health_check(self) -> HealthStatus:
        results = {}
        overall_status = "healthy"

        for check_name, check_func in self.checks.items():
            try:
                result = check_func()
                results[check_name] = result

                if result["status"] == "unhealthy":
                    overall_status = "unhealthy"
                elif result["status"] == "degraded" and overall_status == "healthy":
                    overall_status = "degraded"

            except (psutil.Error, OSError, ValueError) as e:
                self.logger.error(f"Health check {check_name} failed: {e}")
                results[check_name] = {"status": "unhealthy", "error": str(e)}
                overall_status = "unhealthy"

        return HealthStatus(
            status=overall_status,
            details=results,
            timestamp=datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')
        )
