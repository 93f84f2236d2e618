"""
Value objects for tax resolution.

All types are frozen dataclasses.  Coordinates and rates are Decimal,
parsed from their source text; floats only appear at the geometry-store
boundary (``GeoPoint.as_lon_lat``).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from uuid import UUID


class JurisdictionType(str, Enum):
    """Kind of taxing authority, in resolution order."""

    STATE = "state"
    COUNTY = "county"
    CITY = "city"
    SPECIAL = "special"  # May overlap other special districts; summed

    @property
    def rank(self) -> int:
        return _TYPE_RANK[self]

    @classmethod
    def parse(cls, value: str | JurisdictionType) -> JurisdictionType | None:
        """Return the member for ``value`` or None if unknown."""
        if isinstance(value, JurisdictionType):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


_TYPE_RANK = {
    JurisdictionType.STATE: 0,
    JurisdictionType.COUNTY: 1,
    JurisdictionType.CITY: 2,
    JurisdictionType.SPECIAL: 3,
}


@dataclass(frozen=True)
class GeoPoint:
    """A (latitude, longitude) pair in WGS84 degrees."""

    latitude: Decimal
    longitude: Decimal

    def as_lon_lat(self) -> tuple[float, float]:
        """(lon, lat) floats for the geometry store's point constructor."""
        return float(self.longitude), float(self.latitude)


@dataclass(frozen=True)
class ServiceRegion:
    """Inclusive bounding envelope of the covered region."""

    lat_min: Decimal
    lat_max: Decimal
    lon_min: Decimal
    lon_max: Decimal

    def __post_init__(self) -> None:
        if self.lat_min >= self.lat_max:
            raise ValueError("lat_min must be below lat_max")
        if self.lon_min >= self.lon_max:
            raise ValueError("lon_min must be below lon_max")

    def contains_latitude(self, latitude: Decimal) -> bool:
        return self.lat_min <= latitude <= self.lat_max

    def contains_longitude(self, longitude: Decimal) -> bool:
        return self.lon_min <= longitude <= self.lon_max

    def contains(self, point: GeoPoint) -> bool:
        return self.contains_latitude(point.latitude) and self.contains_longitude(
            point.longitude
        )


NEW_YORK_STATE = ServiceRegion(
    lat_min=Decimal("40.0"),
    lat_max=Decimal("45.1"),
    lon_min=Decimal("-80.0"),
    lon_max=Decimal("-71.0"),
)


@dataclass(frozen=True)
class TaxQuery:
    """Unit of work for the resolver/composer pair."""

    point: GeoPoint
    subtotal: Decimal
    as_of: date


@dataclass(frozen=True)
class RateRecord:
    """One dated rate of a jurisdiction: active on [valid_from, valid_to)."""

    jurisdiction_id: UUID
    rate: Decimal
    valid_from: date
    valid_to: date | None = None
    rate_id: UUID | None = None

    def __post_init__(self) -> None:
        if self.valid_to is not None and self.valid_from >= self.valid_to:
            raise ValueError(
                f"valid_from ({self.valid_from}) must be before valid_to ({self.valid_to})"
            )

    @property
    def is_open(self) -> bool:
        return self.valid_to is None

    def is_active_on(self, on_date: date) -> bool:
        if on_date < self.valid_from:
            return False
        return self.valid_to is None or self.valid_to > on_date


@dataclass(frozen=True)
class JurisdictionMatch:
    """A jurisdiction containing a point, with its rate active on the query date."""

    jurisdiction_id: UUID
    name: str
    type: JurisdictionType
    rate: Decimal

    @property
    def sort_key(self) -> tuple[int, str, str]:
        return (self.type.rank, self.name, str(self.jurisdiction_id))


def utc_date(timestamp: datetime) -> date:
    """Calendar date of a timestamp in UTC (naive timestamps are UTC)."""
    if timestamp.tzinfo is None:
        return timestamp.date()
    return timestamp.astimezone(timezone.utc).date()


@dataclass(frozen=True)
class TaxCacheKey:
    """(latitude, longitude, calendar date) -- time of day is ignored."""

    latitude: Decimal
    longitude: Decimal
    as_of: date

    @classmethod
    def for_timestamp(cls, point: GeoPoint, timestamp: datetime) -> TaxCacheKey:
        return cls(point.latitude, point.longitude, utc_date(timestamp))

    @property
    def point(self) -> GeoPoint:
        return GeoPoint(self.latitude, self.longitude)
