
"""
Ambiance - deterministic, noise-driven placement of ambient sound events.

Ambiance decides *when* ambient events happen along a timeline. A smooth,
seeded fractal noise field stands in for "how busy the scene is" at any
moment, and a placement planner turns that field into event times: sparse
where the noise is low, dense where it is high, nothing at all below a
threshold. The same seed and parameters always give the same events, so a
preview drawn from the field shows exactly what will be generated.

What it provides:

- **Noise field.** Multi-octave value noise with smoothstep interpolation,
  normalized to [0, 1], with independent decorrelated streams for density,
  accept/reject decisions, jitter, item selection and area selection.
- **Two placement algorithms.** *Probability* walks a regular grid and
  accepts each slot with the noise-derived probability, then jitters it.
  *Accumulation* integrates the density and emits an event each time the
  running total crosses one, giving evenly spread, count-accurate output.
- **Document tree.** Folders, groups and containers addressed by index
  paths, with parameter inheritance from group to container and
  "mixed value" reporting for multi-selection editing.
- **Incremental regeneration.** Edits only mark nodes dirty; a
  per-frame coordinator regenerates what changed, collapses edit bursts
  inside a short throttle window, and regenerates a dirty group as a whole
  instead of container by container.
- **MIDI export.** Generated placements can be written to a Standard MIDI
  File with one track per container, for auditioning in any DAW.

Minimal example:

    ```python
    import ambiance

    doc = ambiance.Hierarchy.from_dict([
        {"type": "group", "name": "Forest", "noise": {"density": 60},
         "containers": [{"name": "Birds", "items": ["bird_01", "bird_02"]}]},
    ])

    session = ambiance.Session(doc)
    session.set_selection(0.0, 120.0)
    session.generate_all()

    for name, placements in session.tracks():
        print(name, [round(p.time, 2) for p in placements])
    ```

Package-level exports: ``Session``, ``NoiseParameters``, ``Algorithm``,
``Hierarchy``, ``RegenerationCoordinator``, ``TimeSelection``, ``plan``,
``place``, ``value_at``, ``curve``.
"""

import ambiance.hierarchy
import ambiance.noise
import ambiance.placement
import ambiance.regeneration
import ambiance.session

from ambiance.hierarchy import Container, Folder, Group, Hierarchy, Item
from ambiance.noise import Algorithm, NoiseParameters, curve, value_at
from ambiance.placement import Placement, place, plan
from ambiance.regeneration import RegenerationCoordinator, TimeSelection
from ambiance.session import Session
