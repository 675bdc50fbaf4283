"""Engine constants.

This module collects the numeric policy of the placement engine and the
regeneration scheduler in one place:

- **Noise defaults** used when a document node carries no explicit value.
- **Clamp bounds** applied by ``NoiseParameters.sanitized()`` before any noise
  evaluation. Degenerate input is clamped, never rejected.
- **Stream offsets** that decorrelate the auxiliary noise streams (decision,
  jitter, item selection, area selection) from the density stream.
- **Cost caps** that bound the worst-case work of one ``plan()`` call.
- **Scheduling** constants for the regeneration coordinator and the session
  frame loop.

Times are in seconds throughout.
"""

# Noise defaults

DEFAULT_SEED = 0
DEFAULT_FREQUENCY = 1.0
DEFAULT_AMPLITUDE = 50.0
DEFAULT_OCTAVES = 2
DEFAULT_PERSISTENCE = 0.5
DEFAULT_LACUNARITY = 2.0
DEFAULT_DENSITY = 50.0
DEFAULT_THRESHOLD = 0.0

SEED_MIN = 1
SEED_MAX = 99999

# Clamp bounds

MIN_FREQUENCY = 0.01
MAX_FREQUENCY = 1000.0
MIN_OCTAVES = 1
MAX_OCTAVES = 8
MIN_PERSISTENCE = 0.01
MAX_PERSISTENCE = 1.0
MIN_LACUNARITY = 1.01
MAX_LACUNARITY = 8.0
MIN_PERCENT = 0.0
MAX_PERCENT = 100.0

# The lattice is queried at time / NOISE_TIME_SCALE * frequency, so a frequency
# of 1.0 produces roughly one density swell every ten seconds.
NOISE_TIME_SCALE = 10.0

LAYER_SEED_STRIDE = 1013

# Auxiliary streams: (seed offset, time offset, frequency scale)

DECISION_SEED_OFFSET = 54321
DECISION_TIME_OFFSET = 0.789
DECISION_FREQ_SCALE = 11.3

JITTER_SEED_OFFSET = 11111
JITTER_TIME_OFFSET = 1.618
JITTER_FREQ_SCALE = 13.7

SELECTION_SEED_OFFSET = 77777
SELECTION_TIME_OFFSET = 2.345
SELECTION_FREQ_SCALE = 17.9

AREA_SEED_OFFSET = 33333
AREA_TIME_OFFSET = 3.141
AREA_FREQ_SCALE = 19.3

# Placement

JITTER_SPREAD = 0.5            # jitter spans +/- 25% of the probability grid step
ACCUMULATION_OVERSAMPLE = 10   # accumulation samples this many times per grid step
ACCUMULATOR_DECAY = 0.9        # leak applied to the accumulator below threshold

MAX_PLACEMENT_ITERATIONS = 1_000_000
EVENT_CAP_HEADROOM = 2.0
MIN_EVENT_CAP = 64
MAX_EVENT_CAP = 200_000

# Scheduling

THROTTLE_QUANTUM = 0.1
FRAME_INTERVAL = 1.0 / 30.0

# Preview

PREVIEW_FALLBACK_DURATION = 60.0
PREVIEW_SAMPLE_COUNT = 400
