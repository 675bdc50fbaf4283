"""The document session: tree, selection, generated content and frame loop.

:class:`Session` is the host side of the engine. It owns the document tree
and the active time selection, keeps the placements generated for each
container, and wires its own generation methods into a
:class:`~ambiance.regeneration.RegenerationCoordinator`.

Preview and generation share one code path: :meth:`Session.preview` and
:meth:`Session.generate_container` both call
:func:`ambiance.placement.plan` with the container's effective parameters
over the same range, so what the preview shows is what gets generated.
"""

import asyncio
import dataclasses
import logging
import time
import typing

import ambiance.constants
import ambiance.event_emitter
import ambiance.hierarchy
import ambiance.midi_export
import ambiance.noise
import ambiance.placement
import ambiance.regeneration


logger = logging.getLogger(__name__)


@dataclasses.dataclass
class Preview:

	"""
	Everything a preview panel draws for one group or container.

	Attributes:
		start: Preview range start (the selection, or a fallback range).
		end: Preview range end.
		noise: Raw density noise samples.
		probability: Placement probability ``p(t)`` samples.
		threshold: Threshold line, in [0, 1].
		times: Event times that generation will produce for this range.
	"""

	start: float
	end: float
	noise: ambiance.noise.NoiseCurve
	probability: ambiance.noise.NoiseCurve
	threshold: float
	times: typing.List[float]


class Session:

	"""
	One open document and its generated content.

	Example:
		```python
		doc = ambiance.hierarchy.Hierarchy.from_dict(config["document"])
		session = ambiance.Session(doc)
		session.set_selection(0.0, 120.0)
		session.generate_all()

		session.edit((0, 0), density=80)
		session.tick()   # regenerates only the edited group
		```
	"""

	def __init__ (
		self,
		hierarchy: typing.Optional[ambiance.hierarchy.Hierarchy] = None,
		selection: typing.Optional[ambiance.regeneration.TimeSelection] = None,
		clock: typing.Callable[[], float] = time.monotonic,
		quantum: float = ambiance.constants.THROTTLE_QUANTUM,
		is_materialized: typing.Optional[ambiance.regeneration.MaterializedCheck] = None
	) -> None:

		self.hierarchy = hierarchy if hierarchy is not None else ambiance.hierarchy.Hierarchy()
		self.selection = selection if selection is not None else ambiance.regeneration.TimeSelection()
		self.events = ambiance.event_emitter.EventEmitter()

		# Generated content, keyed by container node_id.
		self.placements: typing.Dict[int, typing.List[ambiance.placement.Placement]] = {}

		self.coordinator = ambiance.regeneration.RegenerationCoordinator(
			hierarchy = self.hierarchy,
			generate_group = self.generate_group,
			generate_container = self.generate_container,
			selection = lambda: self.selection,
			clock = clock,
			quantum = quantum,
			is_materialized = is_materialized,
			events = self.events
		)

		self.running = False
		self.frame_count = 0
		self._stop_event: typing.Optional[asyncio.Event] = None

	def set_selection (self, start: float, end: float) -> ambiance.regeneration.TimeSelection:

		"""Set the active time selection. An empty or reversed range is stored as invalid."""

		self.selection = ambiance.regeneration.TimeSelection.between(start, end)

		if not self.selection.valid:
			logger.warning(f"Ignoring empty time selection {start}..{end}")

		return self.selection

	def clear_selection (self) -> None:

		self.selection = ambiance.regeneration.TimeSelection()

	def _group_at (self, path: typing.Sequence[int]) -> ambiance.hierarchy.Group:

		group = self.hierarchy.resolve(path)

		if not isinstance(group, ambiance.hierarchy.Group):
			raise ValueError(f"No group at {tuple(path)}")

		return group

	def _fill (self, group: ambiance.hierarchy.Group, container: ambiance.hierarchy.Container) -> int:

		"""Replace a container's placements for the current selection."""

		params = ambiance.hierarchy.effective_parameters(group, container)
		placements = ambiance.placement.place(self.selection.start, self.selection.end, params, container.items)

		self.placements[container.node_id] = placements

		return len(placements)

	def _prune (self) -> None:

		"""Drop placements of containers that have left the document."""

		live = {node.node_id for _, node in self.hierarchy.walk()}

		for node_id in [node_id for node_id in self.placements if node_id not in live]:
			del self.placements[node_id]

	def generate_group (self, path: typing.Sequence[int]) -> int:

		"""Regenerate every container of the group at ``path``. Returns the event count."""

		if not self.selection.valid:
			logger.warning("Create a time selection before generating")
			return 0

		group = self._group_at(path)
		total = sum(self._fill(group, container) for container in group.containers)

		self._prune()

		logger.info(f"Generated group {group.name!r}: {total} events in {len(group.containers)} containers")

		return total

	def generate_container (self, group_path: typing.Sequence[int], index: int) -> int:

		"""Regenerate one container of the group at ``group_path``. Returns the event count."""

		if not self.selection.valid:
			logger.warning("Create a time selection before generating")
			return 0

		group = self._group_at(group_path)

		if not 0 <= index < len(group.containers):
			raise ValueError(f"Group {group.name!r} has no container {index}")

		container = group.containers[index]
		count = self._fill(group, container)

		logger.info(f"Generated container {container.name!r}: {count} events")

		return count

	def generate_all (self) -> int:

		"""Regenerate the whole document and clear every flag. Returns the event count."""

		if not self.selection.valid:
			logger.warning("Create a time selection before generating")
			return 0

		self.placements = {}
		total = 0

		for path, group in list(self.hierarchy.groups()):

			total += self.generate_group(path)
			group.needs_regeneration = False

			for container in group.containers:
				container.needs_regeneration = False

		logger.info(f"Generated {total} events over {self.selection.duration:.1f}s")

		return total

	def edit (self, *paths: typing.Sequence[int], **changes: typing.Any) -> int:

		"""Change parameters on the nodes at ``paths`` and mark them for regeneration."""

		return self.hierarchy.edit(paths, **changes)

	def preview (self, group_path: typing.Sequence[int], index: typing.Optional[int] = None, sample_count: int = ambiance.constants.PREVIEW_SAMPLE_COUNT) -> Preview:

		"""Compute the preview of a group, or of one of its containers when ``index`` is given.

		Without a valid selection the preview covers a fallback range starting at zero.
		"""

		group = self._group_at(group_path)
		params = group.noise

		if index is not None:

			if not 0 <= index < len(group.containers):
				raise ValueError(f"Group {group.name!r} has no container {index}")

			params = ambiance.hierarchy.effective_parameters(group, group.containers[index])

		if self.selection.valid:
			start, end = self.selection.start, self.selection.end
		else:
			start, end = 0.0, ambiance.constants.PREVIEW_FALLBACK_DURATION

		return Preview(
			start = start,
			end = end,
			noise = ambiance.noise.curve(start, end, sample_count, params),
			probability = ambiance.placement.density_curve(start, end, sample_count, params),
			threshold = params.sanitized().threshold / 100.0,
			times = ambiance.placement.plan(start, end, params)
		)

	def tracks (self) -> typing.Iterator[typing.Tuple[str, typing.List[ambiance.placement.Placement]]]:

		"""Yield ``("Group/Container", placements)`` for every generated container, in document order."""

		for _, group in self.hierarchy.groups():
			for container in group.containers:
				if container.node_id in self.placements:
					yield f"{group.name}/{container.name}", self.placements[container.node_id]

	def export_midi (self, filename: str, bpm: float = 120.0) -> bool:

		"""Write the generated placements to a MIDI file, one track per container."""

		return ambiance.midi_export.export_placements(
			dict(self.tracks()),
			filename,
			bpm = bpm,
			origin = self.selection.start if self.selection.valid else 0.0
		)

	def tick (self) -> None:

		"""Run one coordinator tick. Call once per host frame."""

		self.coordinator.tick()
		self.frame_count += 1

	async def run (self, frame_interval: float = ambiance.constants.FRAME_INTERVAL, frames: typing.Optional[int] = None) -> None:

		"""Tick once per frame until :meth:`stop` is called or ``frames`` ticks have run."""

		if self.running:
			return

		self.running = True
		self._stop_event = asyncio.Event()

		logger.info("Session started")
		await self.events.emit_async("start")

		try:
			ticks = 0

			while not self._stop_event.is_set():

				self.tick()
				ticks += 1

				if frames is not None and ticks >= frames:
					break

				try:
					await asyncio.wait_for(self._stop_event.wait(), timeout=frame_interval)
				except asyncio.TimeoutError:
					pass

		finally:
			self.running = False
			logger.info("Session stopped")
			await self.events.emit_async("stop")

	def stop (self) -> None:

		"""Ask a running frame loop to finish after its current frame."""

		if self._stop_event is not None:
			self._stop_event.set()

	def play (self, frame_interval: float = ambiance.constants.FRAME_INTERVAL) -> None:

		"""Run the frame loop until interrupted (e.g. via Ctrl+C)."""

		try:
			asyncio.run(self.run(frame_interval))

		except KeyboardInterrupt:
			pass
