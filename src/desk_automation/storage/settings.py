"""
Global settings for desk-automation.
"""

from dataclasses import dataclass
from datetime import tzinfo
from typing import Any, Dict, Optional, Tuple
from zoneinfo import ZoneInfo

from desk_automation.scheduling.solar import local_timezone


@dataclass
class GlobalSettings:
    """
    Engine-wide settings.

    Attributes:
        notifications_enabled: Report execution results through the notifier
        latitude / longitude: Coordinates for solar triggers (None = unset)
        use_automatic_location: Prefer a platform location source when one
            is available; coordinates are still required for solar triggers
        timezone: IANA zone name for solar times (None = system zone)
        check_interval_seconds: Scheduler cadence, in (0, 60)
        verbose_logging: Log at DEBUG level
    """

    notifications_enabled: bool = True
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    use_automatic_location: bool = False
    timezone: Optional[str] = None
    check_interval_seconds: float = 1.0
    verbose_logging: bool = False

    def __post_init__(self) -> None:
        if self.latitude is not None and not -90 <= self.latitude <= 90:
            raise ValueError(f"Latitude must be within [-90, 90], got {self.latitude}")
        if self.longitude is not None and not -180 <= self.longitude <= 180:
            raise ValueError(f"Longitude must be within [-180, 180], got {self.longitude}")
        if not 0 < self.check_interval_seconds < 60:
            raise ValueError(
                f"check_interval_seconds must be in (0, 60), got {self.check_interval_seconds}"
            )

    @property
    def coordinates(self) -> Optional[Tuple[float, float]]:
        if self.latitude is None or self.longitude is None:
            return None
        return (self.latitude, self.longitude)

    @property
    def has_location(self) -> bool:
        return self.coordinates is not None

    def tzinfo(self) -> tzinfo:
        """Timezone for solar calculations."""
        if self.timezone:
            return ZoneInfo(self.timezone)
        return local_timezone()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "notifications_enabled": self.notifications_enabled,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "use_automatic_location": self.use_automatic_location,
            "timezone": self.timezone,
            "check_interval_seconds": self.check_interval_seconds,
            "verbose_logging": self.verbose_logging,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "GlobalSettings":
        """Deserialize from dict (missing keys use defaults)."""
        data = data or {}
        latitude = data.get("latitude")
        longitude = data.get("longitude")
        return cls(
            notifications_enabled=bool(data.get("notifications_enabled", True)),
            latitude=float(latitude) if latitude is not None else None,
            longitude=float(longitude) if longitude is not None else None,
            use_automatic_location=bool(data.get("use_automatic_location", False)),
            timezone=data.get("timezone") or None,
            check_interval_seconds=float(data.get("check_interval_seconds", 1.0)),
            verbose_logging=bool(data.get("verbose_logging", False)),
        )
