"""
Sunrise and sunset calculation.

Uses a simplified declination / hour-angle model:

    declination = -23.45 deg * cos(pi * (day_of_year + 10) / 182.5)
    cos(H)      = -tan(latitude) * tan(declination)
    solar noon  = 12 - longitude / 15 + utc_offset_hours
    sunrise     = solar noon - H / 15
    sunset      = solar noon + H / 15

This is an approximation, not an ephemeris: results can be several minutes
off (no equation of time, no refraction). Results are truncated to the whole
minute. When cos(H) falls outside [-1, 1] the sun does not rise or set on that
date (polar day or night) and None is returned.
"""

import math
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Optional

from .models import SolarEvent


def local_timezone() -> tzinfo:
    """Return the system's local timezone."""
    return datetime.now().astimezone().tzinfo


class SolarTimeCalculator:
    """
    Calculates sunrise and sunset for fixed coordinates.

    Args:
        latitude: Degrees north (negative for south)
        longitude: Degrees east (negative for west)
        tz: Timezone results are anchored to (default: system local zone)
    """

    def __init__(
        self,
        latitude: float,
        longitude: float,
        tz: Optional[tzinfo] = None,
    ) -> None:
        self.latitude = float(latitude)
        self.longitude = float(longitude)
        self.tz = tz or local_timezone()

    @classmethod
    def from_coordinates(
        cls,
        latitude: Optional[float],
        longitude: Optional[float],
        tz: Optional[tzinfo] = None,
    ) -> Optional["SolarTimeCalculator"]:
        """Create a calculator, or None if either coordinate is missing."""
        if latitude is None or longitude is None:
            return None
        return cls(latitude, longitude, tz)

    def __repr__(self) -> str:
        return f"SolarTimeCalculator(latitude={self.latitude}, longitude={self.longitude}, tz={self.tz})"

    # =========================================================================
    # Public API
    # =========================================================================

    def sunrise(self, day: date | datetime, offset_minutes: int = 0) -> Optional[datetime]:
        """Sunrise on the given date, shifted by offset_minutes."""
        return self.event(SolarEvent.SUNRISE, day, offset_minutes)

    def sunset(self, day: date | datetime, offset_minutes: int = 0) -> Optional[datetime]:
        """Sunset on the given date, shifted by offset_minutes."""
        return self.event(SolarEvent.SUNSET, day, offset_minutes)

    def event(
        self,
        kind: SolarEvent,
        day: date | datetime,
        offset_minutes: int = 0,
    ) -> Optional[datetime]:
        """
        Calculate a solar event.

        Args:
            kind: SUNRISE or SUNSET
            day: Calendar date (a datetime is converted to self.tz first)
            offset_minutes: Signed shift applied to the result

        Returns:
            Timezone-aware datetime, or None during polar day/night
        """
        local_day = self._local_date(day)
        hours = self._event_hours(local_day, kind is SolarEvent.SUNRISE)
        if hours is None:
            return None

        midnight = datetime.combine(local_day, time(0, 0), tzinfo=self.tz)
        minutes = math.floor(hours * 60)
        return midnight + timedelta(minutes=minutes + offset_minutes)

    # =========================================================================
    # Calculation
    # =========================================================================

    def _local_date(self, day: date | datetime) -> date:
        if isinstance(day, datetime):
            if day.tzinfo is not None:
                day = day.astimezone(self.tz)
            return day.date()
        return day

    def _utc_offset_hours(self, day: date) -> float:
        noon = datetime.combine(day, time(12, 0), tzinfo=self.tz)
        offset = noon.utcoffset() or timedelta(0)
        return offset.total_seconds() / 3600.0

    def _event_hours(self, day: date, is_sunrise: bool) -> Optional[float]:
        """Local clock hours (may fall outside 0..24) of the event, or None."""
        day_of_year = day.timetuple().tm_yday

        lat_rad = math.radians(self.latitude)
        declination = math.radians(-23.45 * math.cos(math.pi * (day_of_year + 10) / 182.5))

        cos_hour_angle = -math.tan(lat_rad) * math.tan(declination)
        if cos_hour_angle < -1 or cos_hour_angle > 1:
            return None

        hour_angle = math.degrees(math.acos(cos_hour_angle))
        solar_noon = 12 - (self.longitude / 15) + self._utc_offset_hours(day)

        if is_sunrise:
            return solar_noon - (hour_angle / 15)
        return solar_noon + (hour_angle / 15)


def sunrise(
    day: date | datetime,
    latitude: float,
    longitude: float,
    tz: Optional[tzinfo] = None,
    offset_minutes: int = 0,
) -> Optional[datetime]:
    """Sunrise for a date and location (see SolarTimeCalculator)."""
    return SolarTimeCalculator(latitude, longitude, tz).sunrise(day, offset_minutes)


def sunset(
    day: date | datetime,
    latitude: float,
    longitude: float,
    tz: Optional[tzinfo] = None,
    offset_minutes: int = 0,
) -> Optional[datetime]:
    """Sunset for a date and location (see SolarTimeCalculator)."""
    return SolarTimeCalculator(latitude, longitude, tz).sunset(day, offset_minutes)
