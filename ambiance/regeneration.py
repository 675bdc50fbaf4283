"""Incremental regeneration of dirty document nodes.

Parameter edits only set ``needs_regeneration`` on the edited node. Once per
frame the host calls :meth:`RegenerationCoordinator.tick`, which walks the
tree, regenerates what is dirty through injected callbacks and clears the
flags it has handled.

Rules applied on every tick:

- Nothing happens without a valid time selection.
- A throttle window of ``quantum`` seconds limits each node to one
  regeneration per window. Bursts of edits inside one window collapse into a
  single regeneration; the next window makes progress again.
- A dirty group is regenerated as a whole. That clears the flags of all of its
  containers too, and marks them as done for the window, so none of them is
  regenerated a second time in the same tick.
- A clean group has its dirty containers regenerated one by one.
- Flags are cleared only after the callback returns. A node that vanished
  from the tree is skipped and keeps its flag.
- ``tick()`` never raises: failures are logged and retried in a later window.
"""

import dataclasses
import enum
import logging
import math
import time
import typing

import ambiance.constants
import ambiance.event_emitter
import ambiance.hierarchy


logger = logging.getLogger(__name__)

GroupCallback = typing.Callable[[ambiance.hierarchy.Path], typing.Any]
ContainerCallback = typing.Callable[[ambiance.hierarchy.Path, int], typing.Any]
MaterializedCheck = typing.Callable[[ambiance.hierarchy.Path, ambiance.hierarchy.Group], bool]


@dataclasses.dataclass(frozen=True)
class TimeSelection:

	"""
	The active time range that generation fills.

	Attributes:
		start: Range start in seconds.
		end: Range end in seconds.
		valid: Whether a selection exists at all.
	"""

	start: float = 0.0
	end: float = 0.0
	valid: bool = False

	@property
	def duration (self) -> float:
		return self.end - self.start if self.valid else 0.0

	@classmethod
	def between (cls, start: float, end: float) -> "TimeSelection":

		"""Build a selection, valid only when both ends are finite and ``end > start``."""

		valid = math.isfinite(start) and math.isfinite(end) and end > start
		return cls(start=start, end=end, valid=valid)


SelectionSource = typing.Union[TimeSelection, typing.Callable[[], typing.Optional[TimeSelection]]]


class CoordinatorState (enum.Enum):

	IDLE = "idle"
	SCANNING = "scanning"


class RegenerationCoordinator:

	"""
	Per-session scheduler that regenerates dirty groups and containers.

	Example:
		```python
		coordinator = ambiance.regeneration.RegenerationCoordinator(
			hierarchy = doc,
			generate_group = regenerate_group,
			generate_container = regenerate_container,
			selection = lambda: current_selection
		)

		# once per UI frame
		coordinator.tick()
		```
	"""

	def __init__ (
		self,
		hierarchy: ambiance.hierarchy.Hierarchy,
		generate_group: GroupCallback,
		generate_container: ContainerCallback,
		selection: SelectionSource,
		clock: typing.Callable[[], float] = time.monotonic,
		quantum: float = ambiance.constants.THROTTLE_QUANTUM,
		is_materialized: typing.Optional[MaterializedCheck] = None,
		events: typing.Optional[ambiance.event_emitter.EventEmitter] = None
	) -> None:

		"""Wire the coordinator to its collaborators.

		Parameters:
			hierarchy: The document tree to scan.
			generate_group: Called with a group's path to regenerate the whole group.
			generate_container: Called with ``(group_path, container_index)``.
			selection: The active time selection, or a callable returning it.
				Callables are read once per tick.
			clock: Monotonic time source in seconds.
			quantum: Throttle window length in seconds.
			is_materialized: Optional check whether a group already exists in the
				host. Groups that don't have their flags cleared without
				generating, since a full generation will create them.
			events: Emitter that receives ``group_regenerated``,
				``container_regenerated`` and ``tick`` notifications.
		"""

		self.hierarchy = hierarchy
		self.generate_group = generate_group
		self.generate_container = generate_container
		self.selection = selection
		self.clock = clock
		self.quantum = quantum
		self.is_materialized = is_materialized
		self.events = events if events is not None else ambiance.event_emitter.EventEmitter()

		self.state = CoordinatorState.IDLE
		self._window_start: typing.Optional[float] = None
		self._regenerated: typing.Set[int] = set()

	@property
	def regenerated_this_window (self) -> typing.FrozenSet[int]:

		"""Node ids already regenerated in the current throttle window."""

		return frozenset(self._regenerated)

	def reset_window (self) -> None:

		"""Forget the current throttle window so the next tick starts a fresh one."""

		self._regenerated.clear()
		self._window_start = None

	def _current_selection (self) -> typing.Optional[TimeSelection]:

		if not callable(self.selection):
			return self.selection

		try:
			return self.selection()
		except Exception as exc:
			logger.warning(f"Time selection source raised: {exc}")
			return None

	def _refresh_window (self, now: float) -> None:

		if self._window_start is None or now - self._window_start > self.quantum:
			self._regenerated.clear()
			self._window_start = now

	def _emit (self, event_name: str, *args: typing.Any) -> None:

		try:
			self.events.emit_sync(event_name, *args)
		except ValueError as exc:
			logger.warning(f"Could not emit {event_name!r}: {exc}")

	def _invoke (self, callback: typing.Callable[..., typing.Any], *args: typing.Any) -> bool:

		"""Run a generation callback, reporting whether it completed."""

		try:
			callback(*args)
		except Exception as exc:
			name = getattr(callback, "__name__", "generation callback")
			logger.warning(f"{name}{args} raised: {exc}")
			return False

		return True

	def _locate (self, node_id: int, hint: typing.Optional[ambiance.hierarchy.Path]) -> typing.Optional[ambiance.hierarchy.Path]:

		"""Return the node's current path, trusting ``hint`` only if it still names the node."""

		if hint is not None:
			node = self.hierarchy.resolve(hint)
			if node is not None and node.node_id == node_id:
				return hint

		return self.hierarchy.path_of(node_id)

	def tick (self) -> None:

		"""Regenerate whatever is dirty and allowed in the current window."""

		selection = self._current_selection()

		if selection is None or not selection.valid:
			return

		try:
			now = self.clock()
		except Exception as exc:
			logger.warning(f"Clock raised: {exc}")
			return

		self._refresh_window(now)
		self.state = CoordinatorState.SCANNING
		regenerated = 0

		try:
			# Snapshot ids and paths up front: callbacks may restructure the tree mid-tick.
			snapshot = {node.node_id: path for path, node in self.hierarchy.walk()}
			group_ids = [group.node_id for _, group in self.hierarchy.groups()]

			for group_id in group_ids:
				regenerated += self._visit_group(group_id, snapshot)

		finally:
			self.state = CoordinatorState.IDLE

		if regenerated:
			logger.debug(f"Tick regenerated {regenerated} node(s)")
			self._emit("tick", regenerated)

	def _visit_group (self, group_id: int, snapshot: typing.Dict[int, ambiance.hierarchy.Path]) -> int:

		path = self._locate(group_id, snapshot.get(group_id))
		group = self.hierarchy.resolve(path) if path is not None else None

		if path is None or not isinstance(group, ambiance.hierarchy.Group):
			logger.debug(f"Group {group_id} left the tree before it could be regenerated")
			return 0

		if self.is_materialized is not None:

			try:
				materialized = self.is_materialized(path, group)
			except Exception as exc:
				logger.warning(f"Materialization check for {group.name!r} raised: {exc}")
				return 0

			if not materialized:
				self._discard_flags(group)
				return 0

		if group.needs_regeneration and group.node_id not in self._regenerated:
			return self._regenerate_group(path, group)

		return self._visit_containers(group, snapshot)

	def _regenerate_group (self, path: ambiance.hierarchy.Path, group: ambiance.hierarchy.Group) -> int:

		self._regenerated.add(group.node_id)

		if not self._invoke(self.generate_group, path):
			return 0

		group.needs_regeneration = False

		for container in group.containers:
			container.needs_regeneration = False
			self._regenerated.add(container.node_id)

		logger.debug(f"Regenerated group {group.name!r} at {path}")
		self._emit("group_regenerated", path)

		return 1

	def _visit_containers (self, group: ambiance.hierarchy.Group, snapshot: typing.Dict[int, ambiance.hierarchy.Path]) -> int:

		count = 0

		for container in list(group.containers):

			if not container.needs_regeneration or container.node_id in self._regenerated:
				continue

			container_path = self._locate(container.node_id, snapshot.get(container.node_id))

			if container_path is None:
				continue

			group_path, index = container_path[:-1], container_path[-1]
			self._regenerated.add(container.node_id)

			if not self._invoke(self.generate_container, group_path, index):
				continue

			container.needs_regeneration = False
			logger.debug(f"Regenerated container {container.name!r} at {container_path}")
			self._emit("container_regenerated", group_path, index)
			count += 1

		return count

	def _discard_flags (self, group: ambiance.hierarchy.Group) -> None:

		"""Clear flags of a group the host has not created yet."""

		if group.needs_regeneration or any(container.needs_regeneration for container in group.containers):
			logger.debug(f"Group {group.name!r} is not in the project yet; clearing its flags")

		group.needs_regeneration = False

		for container in group.containers:
			container.needs_regeneration = False
