import typing

import pytest

import ambiance.hierarchy
import ambiance.noise


class FakeClock:

	"""Manually advanced monotonic clock for coordinator tests."""

	def __init__ (self, now: float = 0.0) -> None:

		self.now = now

	def __call__ (self) -> float:

		return self.now

	def advance (self, seconds: float) -> None:

		"""Move the clock forward by ``seconds``."""

		self.now += seconds


@pytest.fixture
def clock () -> FakeClock:

	"""A fake clock starting at zero."""

	return FakeClock()


def make_group (name: str = "Forest", containers: int = 3, items: int = 2, **noise: typing.Any) -> ambiance.hierarchy.Group:

	"""Build a group whose containers each hold ``items`` named items."""

	return ambiance.hierarchy.Group(
		name = name,
		noise = ambiance.noise.NoiseParameters(**noise),
		containers = [
			ambiance.hierarchy.Container(
				name = f"{name} {index}",
				items = [ambiance.hierarchy.Item(name=f"{name.lower()}_{index}_{i}.wav") for i in range(items)]
			)
			for index in range(containers)
		]
	)


@pytest.fixture
def document () -> ambiance.hierarchy.Hierarchy:

	"""A folder holding two groups, plus one group at the root."""

	return ambiance.hierarchy.Hierarchy([
		ambiance.hierarchy.Folder(name="Outdoor", children=[make_group("Forest"), make_group("River", containers=2)]),
		make_group("Wind", containers=1, density=70),
	])
