"""
Tide curve interpolation between published extremes.

Heights between a pair of extremes follow a half-cosine:

    height = h1 + (h2 - h1) * (1 - cos(fraction * pi)) / 2

which gives the S-shaped rise and fall of a real tide, flat at the turns and
steepest mid-tide, where linear interpolation would put corners at every
extreme. Nothing is extrapolated: instants before the first or after the
last extreme have no height.

All functions are pure and safe to call concurrently.
"""
import math
from bisect import bisect_right
from datetime import datetime, timedelta
from typing import Iterator, Optional, Sequence

from .exceptions import InsufficientData, InvalidInput
from .models import CurvePoint, TideDataset, TideDirection, TideExtreme, TideKind, TideState, as_utc


def interpolate_height(h1: float, h2: float, fraction: float) -> float:
    """Half-cosine interpolation from ``h1`` (fraction 0) to ``h2`` (fraction 1)."""
    if fraction <= 0:
        return h1
    if fraction >= 1:
        return h2
    return h1 + (h2 - h1) * (1 - math.cos(fraction * math.pi)) / 2


def _sorted_extremes(dataset: TideDataset) -> Sequence[TideExtreme]:
    # TideDataset sorts on construction; sort again for hand-built sequences
    return sorted(dataset.extremes, key=lambda e: e.timestamp)


def _state_in(extremes: Sequence[TideExtreme], when: datetime) -> TideState:
    if len(extremes) < 2:
        return TideState.unknown()
    if when < extremes[0].timestamp or when > extremes[-1].timestamp:
        return TideState.unknown()

    # Lower bound i with t_i <= when; the final extreme brackets as an upper bound
    i = bisect_right([e.timestamp for e in extremes], when) - 1
    i = min(i, len(extremes) - 2)
    current, following = extremes[i], extremes[i + 1]

    span = (following.timestamp - current.timestamp).total_seconds()
    fraction = 0.0 if span <= 0 else (when - current.timestamp).total_seconds() / span

    # Going out of a low the water rises; going out of a high it falls
    direction = TideDirection.RISING if current.kind == TideKind.LOW else TideDirection.FALLING
    return TideState(
        state=direction,
        progress=int(math.floor(fraction * 100 + 0.5)),
        height=interpolate_height(current.height, following.height, fraction),
        last_extreme=current,
        next_extreme=following,
    )


def state_at(dataset: TideDataset, when: datetime) -> TideState:
    """
    Instantaneous tide state at ``when``.

    Args:
        dataset: Tide extremes to interpolate between
        when: Query instant (naive values are taken as UTC)

    Returns:
        TideState with direction, progress (0-100) through the current
        rise/fall and interpolated height; ``unknown`` when ``when`` is not
        bracketed by two extremes
    """
    return _state_in(_sorted_extremes(dataset), as_utc(when))


def height_at(dataset: TideDataset, when: datetime) -> float:
    """
    Interpolated height at ``when``, for callers that need a number.

    Raises:
        InsufficientData: If fewer than two extremes bracket ``when``
    """
    state = state_at(dataset, when)
    if state.height is None:
        raise InsufficientData(
            f"No pair of tide extremes brackets {as_utc(when).isoformat()} "
            f"({len(dataset.extremes)} extremes available)"
        )
    return state.height


class TideCurve:
    """
    Evenly spaced heights over a time range.

    Iterating walks the range from scratch each time, so the same curve can be
    plotted or consumed repeatedly.
    """

    def __init__(self, dataset: TideDataset, origin: datetime, total_hours: float, step_minutes: float):
        if step_minutes <= 0:
            raise InvalidInput("step_minutes must be positive")
        if total_hours < 0:
            raise InvalidInput("total_hours must not be negative")
        self._extremes = _sorted_extremes(dataset)
        self.origin = as_utc(origin)
        self.total_hours = total_hours
        self.step_minutes = step_minutes

    @property
    def steps(self) -> int:
        return int(math.floor(self.total_hours * 60 / self.step_minutes))

    def __iter__(self) -> Iterator[CurvePoint]:
        if len(self._extremes) < 2:
            return
        step = timedelta(minutes=self.step_minutes)
        for k in range(self.steps + 1):
            when = self.origin + step * k
            state = _state_in(self._extremes, when)
            if state.height is None:
                continue
            yield CurvePoint(time=when, height=state.height)


def curve(dataset: TideDataset, origin: datetime, total_hours: float, step_minutes: float) -> TideCurve:
    """
    Build a charting curve of ``floor(total_hours * 60 / step_minutes) + 1``
    instants starting at ``origin``; instants outside the dataset span are
    skipped.
    """
    return TideCurve(dataset, origin, total_hours, step_minutes)


def tide_phase(state: TideState, slack_progress: int = 5, turn_progress: int = 15) -> Optional[str]:
    """
    Map a tide state onto the scoring vocabulary.

    Returns:
        'slack' right at a turn, 'high'/'low' close to an extreme,
        'incoming'/'outgoing' for moving water, or None when unknown
    """
    if state.state == TideDirection.UNKNOWN or state.progress is None:
        return None

    progress = state.progress
    if progress <= slack_progress or progress >= 100 - slack_progress:
        return 'slack'
    if progress < turn_progress:
        return 'high' if state.last_extreme.kind == TideKind.HIGH else 'low'
    if progress > 100 - turn_progress:
        return 'high' if state.next_extreme.kind == TideKind.HIGH else 'low'
    return 'incoming' if state.state == TideDirection.RISING else 'outgoing'
