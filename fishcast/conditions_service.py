"""
Fishing Condition Scoring

Combines weather, water, tide, lunar and temporal signals into a single
0-100 score with a rating tier and plain-language recommendations.

The engine is a deterministic weighted rule set: each supplied input maps to
a sub-score in [0, 1], and the sub-scores are averaged with fixed weights.
Inputs that were not supplied are left out of the average entirely rather
than counted as zero, so partial data still yields a usable score.
"""
import math
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from .models import (
    BestWindows,
    ConditionInputs,
    Factor,
    HourlyConditions,
    HourlyPrediction,
    PredictionResult,
    Rating,
)

NEUTRAL_SCORE = 50

WEIGHTS: Dict[Factor, float] = {
    # Weather
    Factor.PRESSURE: 0.15,
    Factor.WIND: 0.10,
    Factor.TEMPERATURE: 0.08,
    Factor.CLOUD_COVER: 0.06,
    Factor.PRECIPITATION: 0.04,
    # Water
    Factor.WATER_TEMP: 0.12,
    Factor.TIDE_PHASE: 0.10,
    Factor.MOON_PHASE: 0.08,
    Factor.CURRENT_SPEED: 0.05,       # no input yet
    # Time
    Factor.TIME_OF_DAY: 0.10,
    Factor.SEASON: 0.06,
    # Catch history
    Factor.HISTORICAL_SUCCESS: 0.06,  # no input yet
}

# Ideal [min, max] bands per habitat.
# Units: pressure inHg, wind mph, temperatures degrees F.
IDEAL_CONDITIONS: Dict[str, Dict[Factor, tuple]] = {
    'freshwater': {
        Factor.PRESSURE: (29.8, 30.2),
        Factor.WIND: (3, 12),
        Factor.TEMPERATURE: (55, 80),
        Factor.WATER_TEMP: (55, 75),
    },
    'saltwater': {
        Factor.PRESSURE: (29.7, 30.3),
        Factor.WIND: (5, 15),
        Factor.TEMPERATURE: (60, 90),
        Factor.WATER_TEMP: (60, 82),
    },
}

# Moderate cover cuts glare without making the water dark
CLOUD_COVER_IDEAL = (30, 70)

PRESSURE_TREND_SCORES = {
    'falling': 1.0,
    'steady': 0.7,
    'rising': 0.5,
    'rapidly_falling': 0.4,  # storm incoming
    'rapidly_rising': 0.3,   # post-front
}

# Moving water is best
TIDE_PHASE_SCORES = {
    'incoming': 1.0,
    'outgoing': 0.8,
    'high': 0.5,
    'low': 0.4,
    'slack': 0.3,
}

# Spring and fall are best for most species
DEFAULT_SEASON_SCORES = [0.4, 0.4, 0.6, 0.8, 1.0, 0.9, 0.7, 0.7, 0.8, 1.0, 0.6, 0.4]

SPECIES_SEASON_SCORES = {
    'largemouth_bass': [0.2, 0.3, 0.6, 0.9, 1.0, 0.9, 0.8, 0.7, 0.8, 0.9, 0.5, 0.2],
    'rainbow_trout': [0.7, 0.8, 1.0, 1.0, 0.8, 0.5, 0.3, 0.3, 0.5, 0.8, 0.9, 0.8],
    'atlantic_salmon': [0.2, 0.3, 0.4, 0.5, 0.7, 1.0, 1.0, 0.9, 0.8, 0.5, 0.3, 0.2],
    'bluefin_tuna': [0.2, 0.2, 0.3, 0.4, 0.5, 0.8, 0.9, 1.0, 1.0, 0.8, 0.4, 0.2],
    'red_snapper': [0.3, 0.3, 0.4, 0.5, 0.6, 1.0, 0.9, 0.8, 0.7, 0.5, 0.4, 0.3],
    'walleye': [0.5, 0.6, 0.8, 1.0, 0.9, 0.7, 0.5, 0.5, 0.7, 0.9, 0.8, 0.6],
    'northern_pike': [0.3, 0.5, 0.8, 1.0, 0.9, 0.6, 0.4, 0.4, 0.7, 0.9, 0.7, 0.4],
}

# (minimum score, rating), checked top-down
RATING_TIERS = [
    (80, Rating.EXCELLENT),
    (65, Rating.GOOD),
    (50, Rating.FAIR),
    (35, Rating.POOR),
]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def range_score(value: float, low: float, high: float) -> float:
    """
    1.0 inside ``[low, high]``, falling linearly to 0 at half the band width
    beyond the nearest bound.
    """
    if low <= value <= high:
        return 1.0
    width = high - low
    distance = low - value if value < low else value - high
    return max(0.0, 1.0 - distance / (width * 0.5))


def pressure_trend_score(trend: str) -> float:
    return PRESSURE_TREND_SCORES.get(trend, 0.5)


def tide_phase_score(phase: str) -> float:
    return TIDE_PHASE_SCORES.get(phase, 0.5)


def precipitation_score(chance: float) -> float:
    if chance < 40:
        return 0.8
    if chance < 70:
        return 0.5
    return 0.2


def moon_phase_score(phase: float) -> float:
    """
    Score a moon phase fraction (0 new, 0.5 full, 1 new again).

    New and full moons mark solunar major periods; the quarters are minor
    periods.
    """
    to_major = min(abs(phase), abs(phase - 0.5), abs(phase - 1))
    if to_major < 0.05:
        return 1.0
    if to_major < 0.1:
        return 0.8
    to_minor = min(abs(phase - 0.25), abs(phase - 0.75))
    if to_minor < 0.05:
        return 0.7
    return 0.4


def time_of_day_score(hour: int) -> float:
    # Dawn and dusk
    if 5 <= hour <= 7 or 17 <= hour <= 19:
        return 1.0
    if 7 <= hour <= 9:
        return 0.8
    if 19 <= hour <= 21:
        return 0.7
    # Midday
    if 11 <= hour <= 14:
        return 0.3
    return 0.5


def season_score(month: int, target_species: Optional[str] = None) -> float:
    """Month 1-12 against the species table, or the default curve."""
    scores = SPECIES_SEASON_SCORES.get(target_species or '', DEFAULT_SEASON_SCORES)
    if not 1 <= month <= 12:
        return 0.5
    return scores[month - 1]


def rating_for(score: int) -> Rating:
    for threshold, rating in RATING_TIERS:
        if score >= threshold:
            return rating
    return Rating.BAD


def compute_factors(inputs: ConditionInputs) -> Dict[Factor, float]:
    """Sub-score every factor whose input was supplied."""
    ideal = IDEAL_CONDITIONS.get(inputs.habitat, IDEAL_CONDITIONS['freshwater'])
    factors: Dict[Factor, float] = {}

    if inputs.pressure is not None:
        factors[Factor.PRESSURE] = range_score(inputs.pressure, *ideal[Factor.PRESSURE])
    if inputs.pressure_trend:
        factors[Factor.PRESSURE] = (
            factors.get(Factor.PRESSURE, 0.5) + pressure_trend_score(inputs.pressure_trend)
        ) / 2

    if inputs.wind_speed is not None:
        factors[Factor.WIND] = range_score(inputs.wind_speed, *ideal[Factor.WIND])
    if inputs.temperature is not None:
        factors[Factor.TEMPERATURE] = range_score(inputs.temperature, *ideal[Factor.TEMPERATURE])
    if inputs.water_temp is not None:
        factors[Factor.WATER_TEMP] = range_score(inputs.water_temp, *ideal[Factor.WATER_TEMP])
    if inputs.cloud_cover is not None:
        factors[Factor.CLOUD_COVER] = range_score(inputs.cloud_cover, *CLOUD_COVER_IDEAL)
    if inputs.precipitation is not None:
        factors[Factor.PRECIPITATION] = precipitation_score(inputs.precipitation)
    if inputs.tide_phase:
        factors[Factor.TIDE_PHASE] = tide_phase_score(inputs.tide_phase)
    if inputs.moon_phase is not None:
        factors[Factor.MOON_PHASE] = moon_phase_score(inputs.moon_phase)
    if inputs.hour is not None:
        factors[Factor.TIME_OF_DAY] = time_of_day_score(inputs.hour)
    if inputs.month is not None:
        factors[Factor.SEASON] = season_score(inputs.month, inputs.target_species)

    return factors


def weighted_score(factors: Dict[Factor, float]) -> int:
    """Weighted mean of the present factors as an integer 0-100."""
    total_weight = 0.0
    weighted_sum = 0.0
    for factor, weight in WEIGHTS.items():
        if factor in factors:
            weighted_sum += factors[factor] * weight
            total_weight += weight
    if total_weight == 0:
        return NEUTRAL_SCORE
    return _round_half_up(weighted_sum / total_weight * 100)


def recommendations_for(score: int, factors: Dict[Factor, float], inputs: ConditionInputs) -> List[str]:
    """
    Advice strings for the weak and strong factors, in fixed priority order.

    Each rule fires independently. When none fires, a message for the overall
    score band is returned instead.
    """
    tips = []

    if factors.get(Factor.TIME_OF_DAY, 1.0) < 0.5:
        tips.append('Consider fishing at dawn (5-7 AM) or dusk (5-7 PM) for better results.')

    if factors.get(Factor.PRESSURE, 1.0) < 0.5:
        tips.append('Barometric pressure is outside ideal range. Fish may be less active.')

    if factors.get(Factor.WIND, 1.0) < 0.4:
        if (inputs.wind_speed or 0) > 15:
            tips.append('High winds: fish deeper structure and sheltered spots.')
        else:
            tips.append('Very calm conditions: try topwater lures early or late.')

    if factors.get(Factor.WATER_TEMP, 1.0) < 0.5:
        if (inputs.water_temp or 0) > 80:
            tips.append("Warm water: fish deeper where it's cooler.")
        else:
            tips.append('Cold water: slow your presentation.')

    if factors.get(Factor.MOON_PHASE, 0.0) >= 0.8:
        tips.append('Major solunar period: fish are typically more active now!')

    if factors.get(Factor.TIDE_PHASE, 0.0) >= 0.8:
        tips.append('Moving tide: excellent time for inshore species.')

    if not tips:
        if score >= 70:
            tips.append('Conditions look great! Get out there!')
        else:
            tips.append('Average conditions. Focus on structure and bait presentation.')

    return tips


def predict(inputs: ConditionInputs) -> PredictionResult:
    """
    Score fishing conditions.

    Args:
        inputs: Any subset of weather, water, tide, lunar and time inputs

    Returns:
        PredictionResult with the 0-100 score, rating tier, the per-factor
        sub-scores that took part, and recommendations
    """
    factors = compute_factors(inputs)
    score = weighted_score(factors)
    return PredictionResult(
        score=score,
        rating=rating_for(score),
        factors=factors,
        recommendations=recommendations_for(score, factors, inputs),
        computed_at=datetime.now(timezone.utc),
    )


def best_windows(
    hourly_forecast: Sequence[HourlyConditions],
    habitat: str = 'freshwater',
    target_species: Optional[str] = None,
    moon_phase: Optional[float] = None,
    month: Optional[int] = None,
) -> BestWindows:
    """
    Score every hour of a forecast and pick the three best.

    Args:
        hourly_forecast: One entry per forecast hour
        habitat: 'freshwater' or 'saltwater'
        target_species: Optional species id for the season table
        moon_phase: Moon phase fraction shared by every hour
        month: Calendar month for the season factor (default: current UTC month)

    Returns:
        BestWindows with all hourly predictions, the top three by score
        (ties keep forecast order), and the rounded mean score
    """
    if month is None:
        month = datetime.now(timezone.utc).month

    predictions = [
        HourlyPrediction(
            hour=h.hour,
            result=predict(ConditionInputs(
                habitat=habitat,
                pressure=h.pressure,
                pressure_trend=h.pressure_trend,
                wind_speed=h.wind_speed,
                temperature=h.temperature,
                water_temp=h.water_temp,
                cloud_cover=h.cloud_cover,
                precipitation=h.precipitation,
                tide_phase=h.tide_phase,
                moon_phase=moon_phase,
                hour=h.hour,
                month=month,
                target_species=target_species,
            )),
        )
        for h in hourly_forecast
    ]
    if not predictions:
        return BestWindows()

    top = sorted(predictions, key=lambda p: p.result.score, reverse=True)[:3]
    average = _round_half_up(sum(p.result.score for p in predictions) / len(predictions))
    return BestWindows(
        predictions=predictions,
        top_windows=top,
        best_hour=top[0],
        average_score=average,
    )
