"""Domain records held by the in-memory cache.

Stations and prices come from the ministry CSV exports, charge stations from
the EV search provider. All records are frozen: a refresh builds new lists and
swaps them into the cache, nothing is mutated in place.
"""

import math
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

# Provider ids are prefixed so they can never collide with ministry station ids.
CHARGE_STATION_ID_PREFIX = "999"


def normalize_station_id(value: Any) -> str:
    """Canonical station identifier used on both sides of the price join.

    Whitespace is trimmed and leading zeros are dropped, so "0045672 " and
    "45672" are the same station. An all-zero id collapses to "0".
    """
    if value is None:
        return ""
    text = str(value).strip()
    if not text:
        return ""
    stripped = text.lstrip("0")
    return stripped or "0"


def parse_coordinate(value: Any) -> float:
    """Parse a coordinate, returning NaN for anything unusable."""
    if value is None:
        return math.nan
    try:
        number = float(str(value).strip().replace(",", "."))
    except (TypeError, ValueError):
        return math.nan
    return number if math.isfinite(number) else math.nan


def parse_price(value: Any) -> Optional[float]:
    """Parse a locale formatted price ("1,899" -> 1.899); None when unparseable."""
    if value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip().replace(",", ".")
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    return number if math.isfinite(number) else None


@dataclass(frozen=True)
class Address:
    street: str = ""
    municipality: str = ""
    province: str = ""


@dataclass(frozen=True)
class Station:
    id: str
    brand: str
    operator: str
    facility_type: str
    name: str
    address: Address
    lat: float
    lon: float

    @classmethod
    def from_row(cls, row: List[str]) -> "Station":
        """Build a station from a positional registry row.

        Columns: id, gestore, bandiera, tipo impianto, nome impianto,
        indirizzo, comune, provincia, latitudine, longitudine.
        """
        return cls(
            id=normalize_station_id(row[0]),
            operator=row[1].strip(),
            brand=row[2].strip(),
            facility_type=row[3].strip(),
            name=row[4].strip(),
            address=Address(street=row[5].strip(), municipality=row[6].strip(), province=row[7].strip()),
            lat=parse_coordinate(row[8]),
            lon=parse_coordinate(row[9]),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        # JSON has no NaN; persist unknown coordinates as null
        data["lat"] = self.lat if math.isfinite(self.lat) else None
        data["lon"] = self.lon if math.isfinite(self.lon) else None
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Station":
        address = data.get("address") or {}
        return cls(
            id=normalize_station_id(data.get("id")),
            brand=data.get("brand") or "",
            operator=data.get("operator") or "",
            facility_type=data.get("facility_type") or "",
            name=data.get("name") or "",
            address=Address(
                street=address.get("street") or "",
                municipality=address.get("municipality") or "",
                province=address.get("province") or "",
            ),
            lat=parse_coordinate(data.get("lat")),
            lon=parse_coordinate(data.get("lon")),
        )


STATION_COLUMNS = 10
PRICE_COLUMNS = 5


@dataclass(frozen=True)
class Price:
    station_id: str
    fuel_type: str
    raw_price: str
    is_self: bool
    updated_at: str

    @property
    def value(self) -> Optional[float]:
        return parse_price(self.raw_price)

    @classmethod
    def from_row(cls, row: List[str]) -> "Price":
        """Columns: idImpianto, descCarburante, prezzo, isSelf, dtComu."""
        return cls(
            station_id=normalize_station_id(row[0]),
            fuel_type=row[1].strip(),
            raw_price=row[2].strip(),
            is_self=row[3].strip() == "1",
            updated_at=row[4].strip(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Price":
        return cls(
            station_id=normalize_station_id(data.get("station_id")),
            fuel_type=str(data.get("fuel_type") or "").strip(),
            raw_price=str(data.get("raw_price") or "").strip(),
            is_self=bool(data.get("is_self")),
            updated_at=str(data.get("updated_at") or ""),
        )


@dataclass(frozen=True)
class Connector:
    type_label: str
    power_kw: Optional[float] = None


@dataclass(frozen=True)
class ChargeStation:
    id: str
    name: str
    operator: str
    address: Address
    lat: float
    lon: float
    connectors: List[Connector] = field(default_factory=list)
    estimated_price_kwh: Optional[float] = None
    status_updated_at: Optional[str] = None

    @property
    def max_power_kw(self) -> Optional[float]:
        powers = [c.power_kw for c in self.connectors if c.power_kw is not None]
        return max(powers) if powers else None


@dataclass(frozen=True)
class SearchArea:
    """Circle covered by an EV provider search."""
    lat: float
    lon: float
    radius_km: float
