"""Seeded fractal noise for density curves.

The noise field is a pure function library: every value is derived from the
query time and a :class:`NoiseParameters` value, nothing else. Identical input
always produces the identical output, in this process and in any other, which
is what lets the preview renderer and the generator call into it separately
and still agree on every placement.

The field is 1D lattice value noise. Each integer lattice point gets a
pseudo-random value from a 32-bit integer hash of the point and a seed, and
values between points are blended with a Hermite smoothstep. Several layers
(octaves) are summed, each at ``lacunarity`` times the frequency and
``persistence`` times the amplitude of the previous one, and the sum is
normalized back into [0, 1].

Independent streams (decision, jitter, item selection) are drawn from the
same seed by offsetting the seed, the query time and the query frequency,
see :class:`NoiseStream`.
"""

import collections.abc
import dataclasses
import enum
import math
import random
import typing

import ambiance.constants


_MASK_32 = 0xFFFFFFFF


class Algorithm (enum.Enum):

	"""
	How a density curve is turned into discrete event times.
	"""

	PROBABILITY = "probability"
	ACCUMULATION = "accumulation"

	@classmethod
	def parse (cls, value: typing.Any) -> "Algorithm":

		"""Accept an ``Algorithm``, or its name/value in any case. Unknown input falls back to ``PROBABILITY``."""

		if isinstance(value, cls):
			return value

		if isinstance(value, str):
			key = value.strip().lower()
			for member in cls:
				if key in (member.value, member.name.lower()):
					return member

		return cls.PROBABILITY


def _finite (value: typing.Any, default: float) -> float:

	"""Convert to float, substituting ``default`` for anything non-numeric or non-finite."""

	try:
		result = float(value)
	except (TypeError, ValueError):
		return float(default)

	if not math.isfinite(result):
		return float(default)

	return result


def _clamp (value: float, low: float, high: float) -> float:
	return max(low, min(high, value))


@dataclasses.dataclass(frozen=True)
class NoiseParameters:

	"""
	The full parameter set of one density curve.

	Attributes:
		seed: Base seed. Every stream and octave layer is derived from it.
		frequency: Density swells per ten seconds, and grid steps per second
			for the Probability algorithm. Must be > 0.
		amplitude: How far the noise pushes the base density, in percent.
		octaves: Number of fractal layers (>= 1).
		persistence: Amplitude factor per octave, in (0, 1].
		lacunarity: Frequency factor per octave, > 1.
		density: Base placement probability, in percent.
		threshold: Probability below which nothing is placed, in percent.
		algorithm: Placement algorithm.

	Instances are immutable. Out-of-range values are tolerated here and
	clamped by :meth:`sanitized` before any evaluation.
	"""

	seed: int = ambiance.constants.DEFAULT_SEED
	frequency: float = ambiance.constants.DEFAULT_FREQUENCY
	amplitude: float = ambiance.constants.DEFAULT_AMPLITUDE
	octaves: int = ambiance.constants.DEFAULT_OCTAVES
	persistence: float = ambiance.constants.DEFAULT_PERSISTENCE
	lacunarity: float = ambiance.constants.DEFAULT_LACUNARITY
	density: float = ambiance.constants.DEFAULT_DENSITY
	threshold: float = ambiance.constants.DEFAULT_THRESHOLD
	algorithm: Algorithm = Algorithm.PROBABILITY

	def sanitized (self) -> "NoiseParameters":

		"""Return a copy with every field clamped into its valid range.

		Non-numeric or non-finite fields fall back to their defaults. The
		result is a fixed point: sanitizing it again returns an equal value.
		"""

		c = ambiance.constants

		octaves = int(_clamp(_finite(self.octaves, c.DEFAULT_OCTAVES), c.MIN_OCTAVES, c.MAX_OCTAVES))

		return NoiseParameters(
			seed = int(_finite(self.seed, c.DEFAULT_SEED)),
			frequency = _clamp(_finite(self.frequency, c.DEFAULT_FREQUENCY), c.MIN_FREQUENCY, c.MAX_FREQUENCY),
			amplitude = max(0.0, _finite(self.amplitude, c.DEFAULT_AMPLITUDE)),
			octaves = octaves,
			persistence = _clamp(_finite(self.persistence, c.DEFAULT_PERSISTENCE), c.MIN_PERSISTENCE, c.MAX_PERSISTENCE),
			lacunarity = _clamp(_finite(self.lacunarity, c.DEFAULT_LACUNARITY), c.MIN_LACUNARITY, c.MAX_LACUNARITY),
			density = _clamp(_finite(self.density, c.DEFAULT_DENSITY), c.MIN_PERCENT, c.MAX_PERCENT),
			threshold = _clamp(_finite(self.threshold, c.DEFAULT_THRESHOLD), c.MIN_PERCENT, c.MAX_PERCENT),
			algorithm = Algorithm.parse(self.algorithm)
		)

	def with_seed (self, seed: int) -> "NoiseParameters":

		"""Return a copy using a different seed."""

		return dataclasses.replace(self, seed=seed)

	def randomized_seed (self, rng: random.Random) -> "NoiseParameters":

		"""Return a copy with a fresh seed drawn from ``rng``.

		Example:
			```python
			params = params.randomized_seed(random.Random(7))
			```
		"""

		return self.with_seed(rng.randint(ambiance.constants.SEED_MIN, ambiance.constants.SEED_MAX))

	@classmethod
	def from_dict (cls, data: typing.Optional[typing.Mapping[str, typing.Any]]) -> "NoiseParameters":

		"""Build parameters from a loosely typed mapping, such as a YAML ``noise:`` block.

		Missing keys keep their defaults and unknown keys are ignored.
		"""

		if not data:
			return cls()

		names = {field.name for field in dataclasses.fields(cls)}
		values = {key: value for key, value in data.items() if key in names}

		if "algorithm" in values:
			values["algorithm"] = Algorithm.parse(values["algorithm"])

		return cls(**values)


@dataclasses.dataclass(frozen=True)
class NoiseStream:

	"""
	A named, independent view of the noise field.

	A stream shifts the seed, the query time and the query frequency so that
	its values are uncorrelated with the density stream and with each other,
	while remaining fully reproducible from the base seed.

	Attributes:
		name: Label used in logs and tests.
		seed_offset: Added to the base seed.
		time_offset: Added to the query time (seconds).
		frequency_scale: Multiplies the base frequency.
		single_octave: Ignore ``octaves`` and evaluate one layer only.
	"""

	name: str
	seed_offset: int = 0
	time_offset: float = 0.0
	frequency_scale: float = 1.0
	single_octave: bool = False


DENSITY = NoiseStream("density")

DECISION = NoiseStream(
	"decision",
	seed_offset = ambiance.constants.DECISION_SEED_OFFSET,
	time_offset = ambiance.constants.DECISION_TIME_OFFSET,
	frequency_scale = ambiance.constants.DECISION_FREQ_SCALE,
	single_octave = True
)

JITTER = NoiseStream(
	"jitter",
	seed_offset = ambiance.constants.JITTER_SEED_OFFSET,
	time_offset = ambiance.constants.JITTER_TIME_OFFSET,
	frequency_scale = ambiance.constants.JITTER_FREQ_SCALE,
	single_octave = True
)

SELECTION = NoiseStream(
	"selection",
	seed_offset = ambiance.constants.SELECTION_SEED_OFFSET,
	time_offset = ambiance.constants.SELECTION_TIME_OFFSET,
	frequency_scale = ambiance.constants.SELECTION_FREQ_SCALE,
	single_octave = True
)

AREA = NoiseStream(
	"area",
	seed_offset = ambiance.constants.AREA_SEED_OFFSET,
	time_offset = ambiance.constants.AREA_TIME_OFFSET,
	frequency_scale = ambiance.constants.AREA_FREQ_SCALE,
	single_octave = True
)


def _lattice (index: int, seed: int) -> float:

	"""Pseudo-random value in [-1, 1) for one lattice point."""

	n = (index * 374761393 + seed * 668265263) & _MASK_32
	n = ((n ^ (n >> 13)) * 1274126177) & _MASK_32
	n ^= n >> 16

	return n / 2147483648.0 - 1.0


def _smooth_noise (x: float, seed: int) -> float:

	"""Value noise at ``x``: two lattice neighbours blended with smoothstep.

	A coordinate that overflowed to infinity reads as the midpoint, 0.0.
	"""

	if not math.isfinite(x):
		return 0.0

	x0 = math.floor(x)
	t = x - x0
	smooth = t * t * (3.0 - 2.0 * t)

	v0 = _lattice(x0, seed)
	v1 = _lattice(x0 + 1, seed)

	return v0 + (v1 - v0) * smooth


def _fractal (x: float, frequency: float, octaves: int, persistence: float, lacunarity: float, seed: int) -> float:

	"""Sum ``octaves`` layers of value noise and normalize into [0, 1]."""

	total = 0.0
	norm = 0.0
	amplitude = 1.0
	layer_frequency = frequency

	for layer in range(octaves):
		layer_seed = seed + ambiance.constants.LAYER_SEED_STRIDE * (layer + 1)
		total += _smooth_noise(x * layer_frequency, layer_seed) * amplitude
		norm += amplitude
		amplitude *= persistence
		layer_frequency *= lacunarity

	return _clamp((total / norm + 1.0) * 0.5, 0.0, 1.0)


def sample (time: float, params: NoiseParameters, stream: NoiseStream = DENSITY) -> float:

	"""Evaluate a stream for parameters that are already sanitized.

	This is the inner loop of the planner; public callers should use
	:func:`value_at` or :func:`stream_value`, which sanitize first.
	"""

	if not math.isfinite(time):
		return 0.5

	octaves = 1 if stream.single_octave else params.octaves
	x = (time + stream.time_offset) / ambiance.constants.NOISE_TIME_SCALE

	return _fractal(
		x,
		params.frequency * stream.frequency_scale,
		octaves,
		params.persistence,
		params.lacunarity,
		params.seed + stream.seed_offset
	)


def stream_value (time: float, params: NoiseParameters, stream: NoiseStream = DENSITY) -> float:

	"""Return the value of ``stream`` at ``time``, in [0, 1]."""

	return sample(time, params.sanitized(), stream)


def value_at (time: float, params: NoiseParameters) -> float:

	"""Return the density noise at ``time`` (seconds), in [0, 1].

	Example:
		```python
		params = ambiance.noise.NoiseParameters(seed=42, octaves=3)
		level = ambiance.noise.value_at(12.5, params)
		```
	"""

	return sample(time, params.sanitized(), DENSITY)


class NoiseCurve (collections.abc.Sequence):

	"""
	Evenly spaced ``(time, value)`` samples across ``[start, end]``.

	The curve is lazy and restartable: values are computed on access, so it
	can be iterated any number of times and always yields the same pairs.
	Each value equals what a direct point query at that time returns.
	"""

	def __init__ (self, start: float, end: float, sample_count: int, sampler: typing.Callable[[float], float]) -> None:

		self.start = start
		self.end = end
		self.sample_count = max(0, int(sample_count))
		self._sampler = sampler

	def time_at (self, index: int) -> float:

		"""Return the time of the sample at ``index``."""

		if self.sample_count == 1:
			return self.start

		return self.start + (self.end - self.start) * index / (self.sample_count - 1)

	def __len__ (self) -> int:
		return self.sample_count

	@typing.overload
	def __getitem__ (self, index: int) -> typing.Tuple[float, float]: ...

	@typing.overload
	def __getitem__ (self, index: slice) -> typing.List[typing.Tuple[float, float]]: ...

	def __getitem__ (self, index: typing.Union[int, slice]) -> typing.Any:

		if isinstance(index, slice):
			return [self[i] for i in range(*index.indices(self.sample_count))]

		if index < 0:
			index += self.sample_count

		if not 0 <= index < self.sample_count:
			raise IndexError("curve index out of range")

		time = self.time_at(index)
		return (time, self._sampler(time))

	def __iter__ (self) -> typing.Iterator[typing.Tuple[float, float]]:

		for index in range(self.sample_count):
			time = self.time_at(index)
			yield (time, self._sampler(time))


def curve (start: float, end: float, sample_count: int, params: NoiseParameters, stream: NoiseStream = DENSITY) -> NoiseCurve:

	"""Sample the noise field for visualization.

	Returns ``sample_count`` pairs spaced evenly from ``start`` to ``end``
	inclusive. A count of zero or less gives an empty curve.
	"""

	clean = params.sanitized()
	return NoiseCurve(start, end, sample_count, lambda time: sample(time, clean, stream))
