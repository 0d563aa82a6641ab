import logging
import math
import uuid
from datetime import datetime, timezone
from functools import lru_cache, partial
from typing import List, Literal, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from pydantic import BaseModel, Field
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from .astronomy_service import AstronomyService
from .conditions_service import best_windows, predict
from .config import Settings
from .exceptions import ProviderUnavailable
from .http_client import fetch_json
from .models import ConditionInputs, Coordinate, HourlyConditions, as_utc
from .result_cache import ResultCache
from .station_index import StationIndex
from .tide_curve import curve, tide_phase
from .tide_providers import NoaaTideProvider, WorldTidesProvider
from .tide_service import TideProviderGateway

logger = logging.getLogger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        return response


app = FastAPI(
    title="Fishcast API",
    description="Tide predictions and fishing condition scores",
    version="1.0.0",
)

# Set up rate limiter (tide endpoints may spend metered provider tokens)
limiter = Limiter(key_func=get_remote_address)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add security headers middleware
app.add_middleware(SecurityHeadersMiddleware)


# Services are built once per process on first use
@lru_cache()
def get_settings() -> Settings:
    return Settings.from_env()


@lru_cache()
def get_cache() -> ResultCache:
    return ResultCache(path=get_settings().cache_path)


@lru_cache()
def get_fetcher():
    """JSON fetcher bounded by the configured response size."""
    return partial(fetch_json, max_size=get_settings().max_response_size)


@lru_cache()
def get_station_index() -> StationIndex:
    settings = get_settings()
    return StationIndex(
        settings.noaa_stations_url,
        timeout=settings.api_timeout_seconds,
        fetch=get_fetcher(),
    )


@lru_cache()
def get_tide_gateway() -> TideProviderGateway:
    settings = get_settings()
    providers = [
        NoaaTideProvider(
            get_station_index(),
            settings.noaa_data_url,
            timeout=settings.api_timeout_seconds,
            max_radius_km=settings.station_radius_km,
            fetch=get_fetcher(),
        ),
        WorldTidesProvider(
            settings.worldtides_api_key,
            settings.worldtides_url,
            timeout=settings.api_timeout_seconds,
            max_days=settings.metered_max_days,
            fetch=get_fetcher(),
        ),
    ]
    return TideProviderGateway(
        providers,
        get_cache(),
        fresh_ttl=settings.fresh_ttl_seconds,
        stale_ttl=settings.stale_ttl_seconds,
    )


@lru_cache()
def get_astronomy_service() -> AstronomyService:
    return AstronomyService()


def _parse_time(value: Optional[str]) -> datetime:
    """Parse an optional ISO 8601 instant, defaulting to now (UTC)."""
    if not value:
        return datetime.now(timezone.utc)
    try:
        return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError:
        raise HTTPException(400, "Invalid time format. Please use ISO 8601 format")


def _internal_error(endpoint: str) -> HTTPException:
    error_id = uuid.uuid4().hex[:8]
    logger.exception(f"Error {error_id} in {endpoint}")
    return HTTPException(500, detail=f"Internal error (ref: {error_id})")


class ConditionsRequest(BaseModel):
    """Inputs for a single prediction. Supplying lat/lon fills omitted tide and time inputs."""
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lon: Optional[float] = Field(None, ge=-180, le=180)
    time: Optional[datetime] = None
    habitat: Literal["freshwater", "saltwater"] = "freshwater"
    pressure: Optional[float] = None
    pressure_trend: Optional[str] = None
    wind_speed: Optional[float] = None
    temperature: Optional[float] = None
    water_temp: Optional[float] = None
    cloud_cover: Optional[float] = Field(None, ge=0, le=100)
    precipitation: Optional[float] = Field(None, ge=0, le=100)
    tide_phase: Optional[str] = None
    moon_phase: Optional[float] = Field(None, ge=0, le=1)
    hour: Optional[int] = Field(None, ge=0, le=23)
    month: Optional[int] = Field(None, ge=1, le=12)
    target_species: Optional[str] = None


class HourlyConditionsModel(BaseModel):
    hour: int = Field(..., ge=0, le=23)
    pressure: Optional[float] = None
    pressure_trend: Optional[str] = None
    wind_speed: Optional[float] = None
    temperature: Optional[float] = None
    water_temp: Optional[float] = None
    cloud_cover: Optional[float] = Field(None, ge=0, le=100)
    precipitation: Optional[float] = Field(None, ge=0, le=100)
    tide_phase: Optional[str] = None


class WindowsRequest(BaseModel):
    hourly: List[HourlyConditionsModel]
    habitat: Literal["freshwater", "saltwater"] = "freshwater"
    target_species: Optional[str] = None
    moon_phase: Optional[float] = Field(None, ge=0, le=1)
    month: Optional[int] = Field(None, ge=1, le=12)


@app.get("/api/v1/tides")
@limiter.limit("30/minute")
async def get_tides(
    request: Request,
    lat: float = Query(..., ge=-90, le=90, description="Latitude in degrees"),
    lon: float = Query(..., ge=-180, le=180, description="Longitude in degrees"),
    days: int = Query(1, ge=1, le=7, description="Number of days of extremes"),
    gateway: TideProviderGateway = Depends(get_tide_gateway),
):
    """
    Get high/low tide extremes for a location.

    US locations near a NOAA station are served from NOAA predictions;
    elsewhere WorldTides is used (capped at 2 days). When every provider
    fails, the last known dataset is returned with `stale: true`.
    """
    try:
        dataset = await run_in_threadpool(gateway.get_tide_dataset, Coordinate(lat, lon), days)
        return {**dataset.to_dict(), "stale": dataset.is_stale}
    except ProviderUnavailable as e:
        raise HTTPException(503, detail=str(e))
    except ValueError as e:
        raise HTTPException(400, detail=str(e))
    except Exception:
        raise _internal_error("get_tides")


@app.get("/api/v1/tides/state")
@limiter.limit("30/minute")
async def get_tide_state(
    request: Request,
    lat: float = Query(..., ge=-90, le=90, description="Latitude in degrees"),
    lon: float = Query(..., ge=-180, le=180, description="Longitude in degrees"),
    time: Optional[str] = Query(None, description="ISO 8601 instant (default: now)"),
    gateway: TideProviderGateway = Depends(get_tide_gateway),
):
    """
    Get the tide state (rising/falling, progress, height) at an instant.

    Returns `state: unknown` rather than an error when no tide data covers
    the instant.
    """
    when = _parse_time(time)
    try:
        state = await run_in_threadpool(gateway.current_state, Coordinate(lat, lon), when)
        return {**state.to_dict(), "time": when.replace(microsecond=0).isoformat()}
    except ValueError as e:
        raise HTTPException(400, detail=str(e))
    except Exception:
        raise _internal_error("get_tide_state")


@app.get("/api/v1/tides/curve")
@limiter.limit("30/minute")
async def get_tide_curve(
    request: Request,
    lat: float = Query(..., ge=-90, le=90, description="Latitude in degrees"),
    lon: float = Query(..., ge=-180, le=180, description="Longitude in degrees"),
    hours: int = Query(24, ge=1, le=48, description="Length of the curve in hours"),
    step: int = Query(30, ge=5, le=180, description="Minutes between points"),
    start: Optional[str] = Query(None, description="ISO 8601 start instant (default: now)"),
    gateway: TideProviderGateway = Depends(get_tide_gateway),
):
    """
    Get interpolated tide heights at regular intervals, for charting.

    Points outside the span of the known extremes are omitted.
    """
    origin = _parse_time(start)
    days = math.ceil(hours / 24) + 1
    try:
        dataset = await run_in_threadpool(gateway.get_tide_dataset, Coordinate(lat, lon), days, origin)
        points = [
            {"time": p.time.replace(microsecond=0).isoformat(), "height": round(p.height, 3)}
            for p in curve(dataset, origin, hours, step)
        ]
        return {
            "source": dataset.source.value,
            "station_id": dataset.station_id,
            "stale": dataset.is_stale,
            "points": points,
        }
    except ProviderUnavailable as e:
        raise HTTPException(503, detail=str(e))
    except ValueError as e:
        raise HTTPException(400, detail=str(e))
    except Exception:
        raise _internal_error("get_tide_curve")


def _build_inputs(
    body: ConditionsRequest,
    gateway: TideProviderGateway,
    astronomy: AstronomyService,
) -> ConditionInputs:
    """Fill tide, moon and local-time inputs the caller left out, when a location is known."""
    inputs = ConditionInputs(
        habitat=body.habitat,
        pressure=body.pressure,
        pressure_trend=body.pressure_trend,
        wind_speed=body.wind_speed,
        temperature=body.temperature,
        water_temp=body.water_temp,
        cloud_cover=body.cloud_cover,
        precipitation=body.precipitation,
        tide_phase=body.tide_phase,
        moon_phase=body.moon_phase,
        hour=body.hour,
        month=body.month,
        target_species=body.target_species,
    )
    if body.lat is None or body.lon is None:
        return inputs

    when = as_utc(body.time) if body.time else datetime.now(timezone.utc)
    coordinate = Coordinate(body.lat, body.lon)

    # Freshwater spots have no tide
    if inputs.tide_phase is None and inputs.habitat == "saltwater":
        dataset_state = gateway.current_state(coordinate, when)
        inputs.tide_phase = tide_phase(dataset_state)

    if inputs.moon_phase is None:
        inputs.moon_phase = astronomy.moon_phase_fraction(when)

    if inputs.hour is None or inputs.month is None:
        local = astronomy.local_time(body.lat, body.lon, when)
        if inputs.hour is None:
            inputs.hour = local.hour
        if inputs.month is None:
            inputs.month = local.month

    return inputs


@app.post("/api/v1/conditions")
async def post_conditions(
    body: ConditionsRequest,
    gateway: TideProviderGateway = Depends(get_tide_gateway),
    astronomy: AstronomyService = Depends(get_astronomy_service),
):
    """
    Score fishing conditions (0-100) with a rating and recommendations.

    All inputs are optional; only supplied factors take part in the score.
    When a moon phase is known (given or derived), a `moon` block reports its
    name and illumination.
    """
    try:
        inputs = await run_in_threadpool(_build_inputs, body, gateway, astronomy)
        result = predict(inputs).to_dict()
        if inputs.moon_phase is not None:
            result["moon"] = {
                "phase": round(inputs.moon_phase, 3),
                "name": AstronomyService.moon_phase_name(inputs.moon_phase),
                "illumination": AstronomyService.moon_illumination(inputs.moon_phase),
            }
        return result
    except ValueError as e:
        raise HTTPException(400, detail=str(e))
    except Exception:
        raise _internal_error("post_conditions")


@app.post("/api/v1/conditions/windows")
async def post_condition_windows(body: WindowsRequest):
    """
    Score each hour of a forecast and return the three best fishing windows.
    """
    hourly = [HourlyConditions(**h.model_dump()) for h in body.hourly]
    result = best_windows(
        hourly,
        habitat=body.habitat,
        target_species=body.target_species,
        moon_phase=body.moon_phase,
        month=body.month,
    )
    return result.to_dict()


@app.get("/health")
async def health(cache: ResultCache = Depends(get_cache)):
    return {"status": "healthy", "cache": cache.stats()}
