"""Turn a density curve into discrete event times.

Both algorithms read the placement probability

    p(t) = clamp01(density/100 + amplitude/100 * (2 * noise(t) - 1))

from the density stream and differ in how they decide where events go:

**Probability** scans a regular grid at ``1/frequency`` seconds. Grid times
below the threshold are skipped; the rest are accepted when an independent
decision sample is at most ``p(t)``, and accepted times are jittered by up to
a quarter of the grid step using a third stream.

**Accumulation** samples ten times finer and integrates ``p(t)`` into a leaky
accumulator. Each time the accumulator reaches 1 an event is emitted and 1 is
subtracted, keeping the remainder, so the long-run event rate converges on
``p * frequency``. Below the threshold the accumulator decays instead of
freezing, which avoids a burst when the curve climbs back over it.

Every function here is deterministic. The preview renderer and the generator
call :func:`plan` with the same arguments and get the same list back.
"""

import dataclasses
import logging
import math
import typing

import ambiance.constants
import ambiance.hierarchy
import ambiance.noise


logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class Placement:

	"""
	One generated event: when it happens and which source it uses.

	Attributes:
		time: Event time in seconds.
		item_index: Index of the chosen item within its container.
		area_index: Index of the chosen area within that item, or ``None``
			when the item has no areas.
		offset: Start position within the source, in seconds. This is the
			area start when an area was chosen and 0 otherwise.
		length: Seconds of source to play: the area or item length, cut so
			the event ends no later than the range end.
	"""

	time: float
	item_index: int = 0
	area_index: typing.Optional[int] = None
	offset: float = 0.0
	length: float = 0.0


def _valid_range (start: float, end: float) -> bool:
	return math.isfinite(start) and math.isfinite(end) and end > start


def _probability (time: float, params: ambiance.noise.NoiseParameters) -> float:

	"""Placement probability for parameters that are already sanitized."""

	noise = ambiance.noise.sample(time, params, ambiance.noise.DENSITY)
	p = params.density / 100.0 + (params.amplitude / 100.0) * (2.0 * noise - 1.0)

	return max(0.0, min(1.0, p))


def placement_probability (time: float, params: ambiance.noise.NoiseParameters) -> float:

	"""Return ``p(t)``, the probability of placing an event at ``time``, in [0, 1]."""

	return _probability(time, params.sanitized())


def event_cap (duration: float, frequency: float) -> int:

	"""Maximum number of events one plan may emit.

	Scales with the expected event count (``duration * frequency``) with
	generous headroom, so the cap is only reached by pathological input.
	"""

	c = ambiance.constants
	expected = duration * frequency * c.EVENT_CAP_HEADROOM

	if not math.isfinite(expected):
		return c.MAX_EVENT_CAP

	return int(max(c.MIN_EVENT_CAP, min(c.MAX_EVENT_CAP, math.ceil(expected))))


def _step_count (duration: float, step: float, label: str) -> int:

	"""Number of fixed-size steps covering ``duration``, bounded by the iteration ceiling."""

	ceiling = ambiance.constants.MAX_PLACEMENT_ITERATIONS
	wanted = duration / step

	if not math.isfinite(wanted) or wanted > ceiling:
		logger.warning(f"{label}: {wanted:.0f} steps requested, limited to {ceiling}")
		return ceiling

	return int(math.ceil(wanted))


def plan_probability (start: float, end: float, params: ambiance.noise.NoiseParameters) -> typing.List[float]:

	"""Place events on a jittered grid gated by the decision stream.

	Returns strictly increasing times within ``[start, end)``.
	"""

	if not _valid_range(start, end):
		return []

	clean = params.sanitized()
	step = 1.0 / clean.frequency
	threshold = clean.threshold / 100.0
	cap = event_cap(end - start, clean.frequency)
	steps = _step_count(end - start, step, "Probability placement")

	times: typing.List[float] = []

	for i in range(steps):

		grid_time = start + i * step

		if grid_time >= end:
			break

		p = _probability(grid_time, clean)

		if p < threshold:
			continue

		if ambiance.noise.sample(grid_time, clean, ambiance.noise.DECISION) > p:
			continue

		jitter = (ambiance.noise.sample(grid_time, clean, ambiance.noise.JITTER) - 0.5) * ambiance.constants.JITTER_SPREAD * step
		placed = grid_time + jitter

		# Jitter can push the first or last candidate over the range boundary.
		if not start <= placed < end:
			continue

		times.append(placed)

		if len(times) >= cap:
			logger.warning(f"Probability placement hit the event cap ({cap}) at {placed:.3f}s")
			break

	return times


def plan_accumulation (start: float, end: float, params: ambiance.noise.NoiseParameters) -> typing.List[float]:

	"""Place events where a leaky integral of ``p(t)`` crosses whole numbers.

	Returns non-decreasing times within ``[start, end)``. Over a long span of
	constant ``p`` the count approaches ``p * frequency * duration``.
	"""

	if not _valid_range(start, end):
		return []

	clean = params.sanitized()
	delta = 1.0 / (clean.frequency * ambiance.constants.ACCUMULATION_OVERSAMPLE)
	increment = clean.frequency * delta
	threshold = clean.threshold / 100.0
	cap = event_cap(end - start, clean.frequency)
	steps = _step_count(end - start, delta, "Accumulation placement")

	times: typing.List[float] = []
	accumulated = 0.0

	for i in range(steps):

		sample_time = start + i * delta

		if sample_time >= end:
			break

		p = _probability(sample_time, clean)

		if p < threshold:
			accumulated *= ambiance.constants.ACCUMULATOR_DECAY
			continue

		accumulated += p * increment

		if accumulated >= 1.0:
			times.append(sample_time)
			accumulated -= 1.0

			if len(times) >= cap:
				logger.warning(f"Accumulation placement hit the event cap ({cap}) at {sample_time:.3f}s")
				break

	return times


def plan (start: float, end: float, params: ambiance.noise.NoiseParameters) -> typing.List[float]:

	"""Return the event times for ``params`` within ``[start, end)``.

	Dispatches on ``params.algorithm``. Degenerate parameters are clamped and
	an empty or invalid range yields an empty list; this never raises.

	Example:
		```python
		params = ambiance.noise.NoiseParameters(seed=3, density=40, algorithm=ambiance.noise.Algorithm.ACCUMULATION)
		times = ambiance.placement.plan(0.0, 60.0, params)
		```
	"""

	algorithm = ambiance.noise.Algorithm.parse(params.algorithm)

	if algorithm is ambiance.noise.Algorithm.ACCUMULATION:
		return plan_accumulation(start, end, params)

	return plan_probability(start, end, params)


def select_index (time: float, count: int, params: ambiance.noise.NoiseParameters, stream: ambiance.noise.NoiseStream = ambiance.noise.SELECTION) -> int:

	"""Deterministically pick an index in ``[0, count)`` for an event at ``time``."""

	if count <= 0:
		raise ValueError(f"count must be positive, got {count}")

	value = ambiance.noise.stream_value(time, params, stream)

	return min(count - 1, int(value * count))


def place (
	start: float,
	end: float,
	params: ambiance.noise.NoiseParameters,
	items: typing.Sequence[ambiance.hierarchy.Item]
) -> typing.List[Placement]:

	"""Plan event times and choose an item (and area) for each.

	Parameters:
		start: Range start in seconds.
		end: Range end in seconds (exclusive).
		params: Noise parameters of the container.
		items: Items available to the container. With no items nothing is
			placed. Items with areas get an ``area_index`` drawn from the area
			stream and play that area; others play from their start.

	Each placement's ``length`` is trimmed so it never runs past ``end``.
	"""

	if not items:
		return []

	placements: typing.List[Placement] = []

	for time in plan(start, end, params):

		item_index = select_index(time, len(items), params, ambiance.noise.SELECTION)
		item = items[item_index]

		area_index: typing.Optional[int] = None
		offset = 0.0
		length = item.length

		if item.areas:
			area_index = select_index(time, len(item.areas), params, ambiance.noise.AREA)
			area_start, area_end = item.areas[area_index]
			offset = area_start
			length = area_end - area_start

		length = max(0.0, min(length, end - time))

		placements.append(Placement(time=time, item_index=item_index, area_index=area_index, offset=offset, length=length))

	return placements



def density_curve (start: float, end: float, sample_count: int, params: ambiance.noise.NoiseParameters) -> ambiance.noise.NoiseCurve:

	"""Sample ``p(t)`` for drawing against the threshold line in a preview."""

	clean = params.sanitized()
	return ambiance.noise.NoiseCurve(start, end, sample_count, lambda time: _probability(time, clean))
