import logging
import typing

import pytest

import ambiance.hierarchy
import ambiance.regeneration

import conftest


SELECTION = ambiance.regeneration.TimeSelection.between(0.0, 60.0)


class Recorder:

	"""Generation callbacks that record how they were called."""

	def __init__ (self) -> None:

		self.groups: typing.List[ambiance.hierarchy.Path] = []
		self.containers: typing.List[typing.Tuple[ambiance.hierarchy.Path, int]] = []

	def generate_group (self, path: ambiance.hierarchy.Path) -> None:

		self.groups.append(path)

	def generate_container (self, group_path: ambiance.hierarchy.Path, index: int) -> None:

		self.containers.append((group_path, index))


def _coordinator (
	document: ambiance.hierarchy.Hierarchy,
	recorder: Recorder,
	clock: conftest.FakeClock,
	**kwargs: typing.Any
) -> ambiance.regeneration.RegenerationCoordinator:

	kwargs.setdefault("selection", SELECTION)

	return ambiance.regeneration.RegenerationCoordinator(
		hierarchy = document,
		generate_group = recorder.generate_group,
		generate_container = recorder.generate_container,
		clock = clock,
		**kwargs
	)


def test_dirty_group_cascades_to_containers (clock: conftest.FakeClock) -> None:

	"""Regenerating a group clears all four flags and never calls generate_container."""

	group = conftest.make_group(containers=3)
	group.mark_dirty()

	for container in group.containers:
		container.mark_dirty()

	recorder = Recorder()
	coordinator = _coordinator(ambiance.hierarchy.Hierarchy([group]), recorder, clock)
	coordinator.tick()

	assert recorder.groups == [(0,)]
	assert recorder.containers == []
	assert group.needs_regeneration is False
	assert all(container.needs_regeneration is False for container in group.containers)


def test_dirty_containers_regenerate_individually (document: ambiance.hierarchy.Hierarchy, clock: conftest.FakeClock) -> None:

	"""A clean group regenerates only its dirty containers."""

	document.resolve((0, 0, 0)).mark_dirty()
	document.resolve((0, 0, 2)).mark_dirty()
	document.resolve((1, 0)).mark_dirty()

	recorder = Recorder()
	_coordinator(document, recorder, clock).tick()

	assert recorder.groups == []
	assert recorder.containers == [((0, 0), 0), ((0, 0), 2), ((1,), 0)]
	assert document.dirty_nodes() == []


def test_throttle_deduplicates_within_quantum (document: ambiance.hierarchy.Hierarchy, clock: conftest.FakeClock) -> None:

	"""A node regenerates at most once per window, and again once the window has passed."""

	container = document.resolve((0, 1, 0))
	recorder = Recorder()
	coordinator = _coordinator(document, recorder, clock)

	container.mark_dirty()
	coordinator.tick()

	container.mark_dirty()
	clock.now = 0.05
	coordinator.tick()

	assert recorder.containers == [((0, 1), 0)]
	assert container.needs_regeneration is True

	clock.now = 0.2
	coordinator.tick()

	assert recorder.containers == [((0, 1), 0), ((0, 1), 0)]
	assert container.needs_regeneration is False


@pytest.mark.parametrize("selection", [
	ambiance.regeneration.TimeSelection(),
	ambiance.regeneration.TimeSelection.between(10.0, 10.0),
	lambda: None,
])
def test_no_selection_is_a_no_op (document: ambiance.hierarchy.Hierarchy, clock: conftest.FakeClock, selection: typing.Any) -> None:

	"""Without a valid selection nothing runs and flags are kept for later."""

	document.resolve((0, 0)).mark_dirty()
	recorder = Recorder()

	_coordinator(document, recorder, clock, selection=selection).tick()

	assert recorder.groups == []
	assert document.resolve((0, 0)).needs_regeneration is True


def test_selection_callable_is_read_each_tick (document: ambiance.hierarchy.Hierarchy, clock: conftest.FakeClock) -> None:

	"""A selection source callable is consulted on every tick."""

	current: typing.Dict[str, typing.Any] = {"selection": None}
	recorder = Recorder()
	coordinator = _coordinator(document, recorder, clock, selection=lambda: current["selection"])

	document.resolve((1,)).mark_dirty()
	coordinator.tick()
	assert recorder.groups == []

	current["selection"] = SELECTION
	coordinator.tick()
	assert recorder.groups == [(1,)]


def test_removed_node_keeps_its_flag (clock: conftest.FakeClock) -> None:

	"""A container removed mid-tick is skipped and its flag is left alone."""

	first = conftest.make_group("First", containers=1)
	second = conftest.make_group("Second", containers=2)
	document = ambiance.hierarchy.Hierarchy([first, second])

	first.mark_dirty()
	doomed = second.containers[1]
	doomed.mark_dirty()

	recorder = Recorder()

	def generate_group (path: ambiance.hierarchy.Path) -> None:
		recorder.groups.append(path)
		document.remove((1, 1))

	coordinator = ambiance.regeneration.RegenerationCoordinator(
		hierarchy = document,
		generate_group = generate_group,
		generate_container = recorder.generate_container,
		selection = SELECTION,
		clock = clock
	)
	coordinator.tick()

	assert recorder.groups == [(0,)]
	assert recorder.containers == []
	assert doomed.needs_regeneration is True


def test_paths_are_relocated_after_restructuring (clock: conftest.FakeClock) -> None:

	"""When a callback shifts the tree, later nodes are addressed by their new paths."""

	first = conftest.make_group("First", containers=1)
	second = conftest.make_group("Second", containers=1)
	document = ambiance.hierarchy.Hierarchy([first, second])

	first.mark_dirty()
	second.containers[0].mark_dirty()

	recorder = Recorder()

	def generate_group (path: ambiance.hierarchy.Path) -> None:
		recorder.groups.append(path)
		document.insert((0,), conftest.make_group("Inserted", containers=1))

	coordinator = ambiance.regeneration.RegenerationCoordinator(
		hierarchy = document,
		generate_group = generate_group,
		generate_container = recorder.generate_container,
		selection = SELECTION,
		clock = clock
	)
	coordinator.tick()

	assert recorder.groups == [(0,)]
	assert recorder.containers == [((2,), 0)]
	assert second.containers[0].needs_regeneration is False


def test_failing_callback_keeps_flag_and_retries (clock: conftest.FakeClock, caplog: pytest.LogCaptureFixture) -> None:

	"""A failed regeneration is logged, keeps its flag and is retried in the next window."""

	group = conftest.make_group(containers=2)
	group.mark_dirty()
	attempts: typing.List[ambiance.hierarchy.Path] = []

	def generate_group (path: ambiance.hierarchy.Path) -> None:
		attempts.append(path)
		raise RuntimeError("track creation failed")

	coordinator = ambiance.regeneration.RegenerationCoordinator(
		hierarchy = ambiance.hierarchy.Hierarchy([group]),
		generate_group = generate_group,
		generate_container = Recorder().generate_container,
		selection = SELECTION,
		clock = clock
	)

	with caplog.at_level(logging.WARNING, logger="ambiance.regeneration"):
		coordinator.tick()

	assert "track creation failed" in caplog.text
	assert group.needs_regeneration is True

	clock.now = 0.05
	coordinator.tick()
	assert len(attempts) == 1

	clock.now = 0.5
	coordinator.tick()
	assert len(attempts) == 2


def test_unmaterialized_group_flags_are_discarded (document: ambiance.hierarchy.Hierarchy, clock: conftest.FakeClock) -> None:

	"""Groups the host has not created yet are cleared without generating."""

	forest = document.resolve((0, 0))
	forest.mark_dirty()
	forest.containers[0].mark_dirty()
	document.resolve((1,)).mark_dirty()

	recorder = Recorder()
	coordinator = _coordinator(document, recorder, clock, is_materialized=lambda path, group: group.name != "Forest")
	coordinator.tick()

	assert recorder.groups == [(1,)]
	assert forest.needs_regeneration is False
	assert forest.containers[0].needs_regeneration is False


def test_events_are_emitted (document: ambiance.hierarchy.Hierarchy, clock: conftest.FakeClock) -> None:

	"""Listeners hear about group, container and tick completions."""

	received: typing.List[typing.Tuple[str, typing.Any]] = []
	recorder = Recorder()
	coordinator = _coordinator(document, recorder, clock)

	coordinator.events.on("group_regenerated", lambda path: received.append(("group", path)))
	coordinator.events.on("container_regenerated", lambda path, index: received.append(("container", (path, index))))
	coordinator.events.on("tick", lambda count: received.append(("tick", count)))

	document.resolve((0, 1)).mark_dirty()
	document.resolve((1, 0)).mark_dirty()
	coordinator.tick()

	assert received == [("group", (0, 1)), ("container", ((1,), 0)), ("tick", 2)]


def test_quiet_tick_emits_nothing (document: ambiance.hierarchy.Hierarchy, clock: conftest.FakeClock) -> None:

	"""A tick with nothing dirty emits no tick event."""

	counts: typing.List[int] = []
	coordinator = _coordinator(document, Recorder(), clock)
	coordinator.events.on("tick", counts.append)

	coordinator.tick()

	assert counts == []


def test_state_is_scanning_only_during_tick (document: ambiance.hierarchy.Hierarchy, clock: conftest.FakeClock) -> None:

	"""The coordinator reports SCANNING while callbacks run and IDLE afterwards."""

	seen: typing.List[ambiance.regeneration.CoordinatorState] = []
	coordinator: typing.Optional[ambiance.regeneration.RegenerationCoordinator] = None

	def generate_group (path: ambiance.hierarchy.Path) -> None:
		assert coordinator is not None
		seen.append(coordinator.state)

	coordinator = ambiance.regeneration.RegenerationCoordinator(
		hierarchy = document,
		generate_group = generate_group,
		generate_container = Recorder().generate_container,
		selection = SELECTION,
		clock = clock
	)

	document.resolve((0, 0)).mark_dirty()
	coordinator.tick()

	assert seen == [ambiance.regeneration.CoordinatorState.SCANNING]
	assert coordinator.state is ambiance.regeneration.CoordinatorState.IDLE


def test_reset_window_allows_immediate_retry (document: ambiance.hierarchy.Hierarchy, clock: conftest.FakeClock) -> None:

	"""reset_window() forgets which nodes already ran this window."""

	group = document.resolve((0, 1))
	recorder = Recorder()
	coordinator = _coordinator(document, recorder, clock)

	group.mark_dirty()
	coordinator.tick()

	assert group.node_id in coordinator.regenerated_this_window

	coordinator.reset_window()
	group.mark_dirty()
	coordinator.tick()

	assert recorder.groups == [(0, 1), (0, 1)]


def test_time_selection_validity () -> None:

	"""Only finite, non-empty, forward ranges are valid."""

	assert ambiance.regeneration.TimeSelection.between(1.0, 4.0).duration == 3.0
	assert ambiance.regeneration.TimeSelection.between(4.0, 1.0).valid is False
	assert ambiance.regeneration.TimeSelection.between(0.0, float("nan")).valid is False
	assert ambiance.regeneration.TimeSelection().duration == 0.0
