"""
Value types shared by the tide gateway, the curve interpolator and the
condition scoring engine.

All timestamps are timezone-aware UTC datetimes. Heights are in meters.
"""
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from .exceptions import InvalidInput


def as_utc(dt: datetime) -> datetime:
    """Return ``dt`` as an aware UTC datetime (naive values are taken as UTC)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float

    def __post_init__(self):
        if not -90.0 <= self.latitude <= 90.0:
            raise InvalidInput(f"Latitude {self.latitude} is outside [-90, 90]")
        if not -180.0 <= self.longitude <= 180.0:
            raise InvalidInput(f"Longitude {self.longitude} is outside [-180, 180]")


class TideKind(str, Enum):
    HIGH = "High"
    LOW = "Low"


class TideSource(str, Enum):
    """
    Origin of a tide dataset.

    - LOCAL_FREE: NOAA CO-OPS station predictions (US waters, no cost).
    - GLOBAL_METERED: WorldTides point predictions (worldwide, token-metered).
    """
    LOCAL_FREE = "local-free-provider"
    GLOBAL_METERED = "global-metered-provider"


@dataclass(frozen=True)
class TideExtreme:
    timestamp: datetime
    height: float
    kind: TideKind

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp.isoformat(),
            'height': self.height,
            'kind': self.kind.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TideExtreme":
        return cls(
            timestamp=as_utc(datetime.fromisoformat(data['timestamp'])),
            height=float(data['height']),
            kind=TideKind(data['kind']),
        )


@dataclass(frozen=True)
class TideDataset:
    """
    A set of tide extremes from one provider fetch.

    Extremes are sorted ascending by timestamp on construction, since
    providers do not guarantee ordering.
    """
    extremes: Sequence[TideExtreme]
    source: TideSource
    station_id: Optional[str] = None
    station_name: Optional[str] = None
    is_stale: bool = False

    def __post_init__(self):
        object.__setattr__(
            self, 'extremes', tuple(sorted(self.extremes, key=lambda e: e.timestamp))
        )

    def as_stale(self) -> "TideDataset":
        return replace(self, is_stale=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'extremes': [e.to_dict() for e in self.extremes],
            'source': self.source.value,
            'station_id': self.station_id,
            'station_name': self.station_name,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TideDataset":
        return cls(
            extremes=[TideExtreme.from_dict(e) for e in data.get('extremes', [])],
            source=TideSource(data['source']),
            station_id=data.get('station_id'),
            station_name=data.get('station_name'),
        )


@dataclass(frozen=True)
class Station:
    id: str
    name: str
    coordinate: Coordinate


@dataclass(frozen=True)
class StationMatch:
    station: Station
    distance_km: float


class TideDirection(str, Enum):
    RISING = "rising"
    FALLING = "falling"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class TideState:
    state: TideDirection
    progress: Optional[int] = None
    height: Optional[float] = None
    last_extreme: Optional[TideExtreme] = None
    next_extreme: Optional[TideExtreme] = None

    @classmethod
    def unknown(cls) -> "TideState":
        return cls(state=TideDirection.UNKNOWN)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'state': self.state.value,
            'progress': self.progress,
            'height': None if self.height is None else round(self.height, 3),
            'last_extreme': self.last_extreme.to_dict() if self.last_extreme else None,
            'next_extreme': self.next_extreme.to_dict() if self.next_extreme else None,
        }


@dataclass(frozen=True)
class CurvePoint:
    time: datetime
    height: float


class Factor(str, Enum):
    """Condition factors; CURRENT_SPEED and HISTORICAL_SUCCESS are weight placeholders."""
    PRESSURE = "pressure"
    WIND = "wind"
    TEMPERATURE = "temperature"
    WATER_TEMP = "water_temp"
    CLOUD_COVER = "cloud_cover"
    PRECIPITATION = "precipitation"
    TIDE_PHASE = "tide_phase"
    MOON_PHASE = "moon_phase"
    CURRENT_SPEED = "current_speed"
    TIME_OF_DAY = "time_of_day"
    SEASON = "season"
    HISTORICAL_SUCCESS = "historical_success"


class Rating(str, Enum):
    BAD = "Bad"
    POOR = "Poor"
    FAIR = "Fair"
    GOOD = "Good"
    EXCELLENT = "Excellent"


@dataclass
class ConditionInputs:
    """
    Raw inputs for a condition prediction. Every field is optional.

    Units follow the ideal-range tables: pressure in inHg, wind in mph,
    temperatures in degrees Fahrenheit, cloud cover and precipitation
    probability in percent, moon phase as a fraction (0 new, 0.5 full).
    """
    habitat: str = 'freshwater'
    pressure: Optional[float] = None
    pressure_trend: Optional[str] = None
    wind_speed: Optional[float] = None
    temperature: Optional[float] = None
    water_temp: Optional[float] = None
    cloud_cover: Optional[float] = None
    precipitation: Optional[float] = None
    tide_phase: Optional[str] = None
    moon_phase: Optional[float] = None
    hour: Optional[int] = None
    month: Optional[int] = None
    target_species: Optional[str] = None


@dataclass(frozen=True)
class PredictionResult:
    score: int
    rating: Rating
    factors: Dict[Factor, float]
    recommendations: List[str]
    computed_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            'score': self.score,
            'rating': self.rating.value,
            'factors': {k.value: round(v, 3) for k, v in self.factors.items()},
            'recommendations': list(self.recommendations),
            'computed_at': self.computed_at.replace(microsecond=0).isoformat(),
        }


@dataclass
class HourlyConditions:
    """One hour of a weather forecast fed to the best-window search."""
    hour: int
    pressure: Optional[float] = None
    pressure_trend: Optional[str] = None
    wind_speed: Optional[float] = None
    temperature: Optional[float] = None
    water_temp: Optional[float] = None
    cloud_cover: Optional[float] = None
    precipitation: Optional[float] = None
    tide_phase: Optional[str] = None


@dataclass(frozen=True)
class HourlyPrediction:
    hour: int
    result: PredictionResult

    def to_dict(self) -> Dict[str, Any]:
        return {'hour': self.hour, **self.result.to_dict()}


@dataclass(frozen=True)
class BestWindows:
    predictions: List[HourlyPrediction] = field(default_factory=list)
    top_windows: List[HourlyPrediction] = field(default_factory=list)
    best_hour: Optional[HourlyPrediction] = None
    average_score: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'predictions': [p.to_dict() for p in self.predictions],
            'top_windows': [p.to_dict() for p in self.top_windows],
            'best_hour': self.best_hour.to_dict() if self.best_hour else None,
            'average_score': self.average_score,
        }
