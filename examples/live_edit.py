import asyncio
import logging
import random

import ambiance

logging.basicConfig(level=logging.INFO)

# Generate once, then tweak parameters while the frame loop runs and watch
# only the touched group regenerate.

document = ambiance.Hierarchy([
	ambiance.Group(
		name = "Rain",
		noise = ambiance.NoiseParameters(seed=12, frequency=4.0, amplitude=40, density=60),
		containers = [
			ambiance.Container(name="Drops", items=[ambiance.Item(f"drop_{i:02d}.wav") for i in range(6)]),
			ambiance.Container(name="Gutter", items=[ambiance.Item("gutter.wav", length=8.0, areas=[(0.0, 2.0), (3.0, 6.5)])]),
		]
	),
	ambiance.Group(
		name = "Thunder",
		noise = ambiance.NoiseParameters(seed=3, frequency=0.1, amplitude=90, density=10, threshold=5),
		containers = [ambiance.Container(name="Rumbles", items=[ambiance.Item("rumble_far.wav"), ambiance.Item("rumble_near.wav")])]
	),
])

session = ambiance.Session(document)
session.set_selection(0.0, 90.0)
session.generate_all()


def on_group_regenerated (path: tuple) -> None:

	group = document.resolve(path)

	for container in group.containers:
		print(f"  {group.name}/{container.name}: {len(session.placements[container.node_id])} events")


session.events.on("group_regenerated", on_group_regenerated)


async def main () -> None:

	rng = random.Random(5)
	loop = asyncio.create_task(session.run())

	# Edit a little slower than the throttle window so every edit lands.
	for _ in range(5):
		session.edit((1,), seed=rng.randint(1, 99999))
		await asyncio.sleep(0.25)

	session.stop()
	await loop


if __name__ == "__main__":
	asyncio.run(main())
