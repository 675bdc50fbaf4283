"""Export generated placements as a Standard MIDI File.

Each container becomes one track named after it. Every placement becomes a
note whose pitch is offset by the chosen item index and whose length is the
placement length, so a DAW shows where events land, which source each one
uses and how long it plays. Bare times and zero-length placements get a short
marker note.
"""

import logging
import typing

import mido

import ambiance.placement


logger = logging.getLogger(__name__)

TICKS_PER_BEAT = 480
BASE_NOTE = 60
NOTE_VELOCITY = 100
NOTE_SECONDS = 0.1

PlacementLike = typing.Union[ambiance.placement.Placement, float]


def _note_fields (placement: PlacementLike) -> typing.Tuple[float, int, float]:

	"""Return (time, item index, duration in seconds) for a placement or bare time."""

	if isinstance(placement, ambiance.placement.Placement):
		duration = placement.length if placement.length > 0 else NOTE_SECONDS
		return placement.time, placement.item_index, duration

	return float(placement), 0, NOTE_SECONDS


def build_midi_file (
	tracks: typing.Mapping[str, typing.Sequence[PlacementLike]],
	bpm: float = 120.0,
	origin: float = 0.0
) -> mido.MidiFile:

	"""Build the MIDI file in memory.

	Parameters:
		tracks: Track name to placements (or bare event times).
		bpm: Tempo written to the file; only affects how seconds map to ticks.
		origin: Time in seconds that maps to tick zero, usually the selection start.
	"""

	if bpm <= 0:
		raise ValueError("BPM must be positive")

	tempo = mido.bpm2tempo(bpm)

	mid = mido.MidiFile(type=1)
	mid.ticks_per_beat = TICKS_PER_BEAT

	conductor = mido.MidiTrack()
	conductor.append(mido.MetaMessage("set_tempo", tempo=tempo, time=0))
	mid.tracks.append(conductor)

	for index, (name, placements) in enumerate(tracks.items()):

		track = mido.MidiTrack()
		track.append(mido.MetaMessage("track_name", name=name, time=0))
		channel = index % 16

		# (tick, order, message); note_off sorts before note_on on the same tick.
		timeline: typing.List[typing.Tuple[int, int, mido.Message]] = []

		for placement in placements:

			seconds, item_index, duration = _note_fields(placement)
			note = max(0, min(127, BASE_NOTE + item_index))
			start_tick = int(round(mido.second2tick(max(0.0, seconds - origin), TICKS_PER_BEAT, tempo)))
			note_ticks = max(1, int(round(mido.second2tick(duration, TICKS_PER_BEAT, tempo))))

			timeline.append((start_tick, 1, mido.Message("note_on", channel=channel, note=note, velocity=NOTE_VELOCITY)))
			timeline.append((start_tick + note_ticks, 0, mido.Message("note_off", channel=channel, note=note, velocity=0)))

		timeline.sort(key=lambda entry: (entry[0], entry[1]))

		last_tick = 0

		for tick, _, message in timeline:
			message.time = tick - last_tick
			track.append(message)
			last_tick = tick

		mid.tracks.append(track)

	return mid


def export_placements (
	tracks: typing.Mapping[str, typing.Sequence[PlacementLike]],
	filename: str,
	bpm: float = 120.0,
	origin: float = 0.0
) -> bool:

	"""Write placements to ``filename``. Returns False (and logs) if saving fails."""

	mid = build_midi_file(tracks, bpm=bpm, origin=origin)
	count = sum(len(placements) for placements in tracks.values())

	logger.info(f"Saving {count} placements on {len(tracks)} tracks to {filename}...")

	try:
		mid.save(filename)
		logger.info(f"Saved {filename}")
	except Exception as e:
		logger.error(f"Failed to save MIDI export: {e}")
		return False

	return True
