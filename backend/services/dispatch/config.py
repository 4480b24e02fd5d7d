"""Dispatch tunables, read from Django settings with built-in defaults."""

from dataclasses import dataclass

from django.conf import settings


@dataclass(frozen=True)
class DispatchConfig:
    default_radius_km: float = 5.0
    min_radius_km: float = 1.0
    max_radius_km: float = 50.0

    default_duration_sec: int = 60
    min_duration_sec: int = 10
    max_duration_sec: int = 300

    default_max_attempts: int = 3
    min_attempts: int = 1
    max_attempts: int = 5

    radius_escalation_factor: float = 1.5
    duration_escalation_factor: float = 1.2

    max_couriers_per_broadcast: int = 20
    courier_view_radius_km: float = 10.0

    ready_scan_interval: float = 10.0
    expiry_sweep_interval: float = 30.0

    def escalate_radius(self, radius_km: float) -> float:
        escalated = min(round(float(radius_km) * self.radius_escalation_factor, 3), self.max_radius_km)
        return max(float(radius_km), escalated)

    def escalate_duration(self, duration_sec: int) -> int:
        escalated = min(int(round(duration_sec * self.duration_escalation_factor)), self.max_duration_sec)
        return max(int(duration_sec), escalated)


def get_dispatch_config() -> DispatchConfig:
    """Build the config from ``DISPATCH_*`` settings."""
    return DispatchConfig(
        default_radius_km=getattr(settings, "DISPATCH_DEFAULT_RADIUS_KM", 5.0),
        min_radius_km=getattr(settings, "DISPATCH_MIN_RADIUS_KM", 1.0),
        max_radius_km=getattr(settings, "DISPATCH_MAX_RADIUS_KM", 50.0),
        default_duration_sec=getattr(settings, "DISPATCH_DEFAULT_DURATION_SECONDS", 60),
        min_duration_sec=getattr(settings, "DISPATCH_MIN_DURATION_SECONDS", 10),
        max_duration_sec=getattr(settings, "DISPATCH_MAX_DURATION_SECONDS", 300),
        default_max_attempts=getattr(settings, "DISPATCH_DEFAULT_MAX_ATTEMPTS", 3),
        min_attempts=getattr(settings, "DISPATCH_MIN_ATTEMPTS", 1),
        max_attempts=getattr(settings, "DISPATCH_MAX_ATTEMPTS", 5),
        radius_escalation_factor=getattr(settings, "DISPATCH_RADIUS_ESCALATION_FACTOR", 1.5),
        duration_escalation_factor=getattr(settings, "DISPATCH_DURATION_ESCALATION_FACTOR", 1.2),
        max_couriers_per_broadcast=getattr(settings, "DISPATCH_MAX_COURIERS_PER_BROADCAST", 20),
        courier_view_radius_km=getattr(settings, "DISPATCH_COURIER_VIEW_RADIUS_KM", 10.0),
        ready_scan_interval=getattr(settings, "DISPATCH_READY_SCAN_INTERVAL", 10.0),
        expiry_sweep_interval=getattr(settings, "DISPATCH_EXPIRY_SWEEP_INTERVAL", 30.0),
    )
