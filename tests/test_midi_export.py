import mido
import pytest

import ambiance.midi_export
import ambiance.placement


def _placements (*times: float, item: int = 0) -> list:

	return [ambiance.placement.Placement(time=t, item_index=item) for t in times]


def test_export_writes_one_track_per_container (tmp_path) -> None:

	"""Each mapping entry becomes a named track after the tempo track."""

	filename = str(tmp_path / "ambiance.mid")
	tracks = {
		"Forest/Birds": _placements(1.0, 2.5),
		"Forest/Leaves": _placements(0.5, item=2),
	}

	assert ambiance.midi_export.export_placements(tracks, filename, bpm=120) is True

	mid = mido.MidiFile(filename)

	assert mid.ticks_per_beat == 480
	assert len(mid.tracks) == 3
	assert [track.name for track in mid.tracks[1:]] == ["Forest/Birds", "Forest/Leaves"]

	tempo = [msg for msg in mid.tracks[0] if msg.type == "set_tempo"]
	assert tempo[0].tempo == mido.bpm2tempo(120)


def test_note_timing_and_pitch () -> None:

	"""Notes land at the placement time and are pitched by item index."""

	mid = ambiance.midi_export.build_midi_file({"Rain": _placements(1.0, item=3)}, bpm=120)
	notes = [msg for msg in mid.tracks[1] if msg.type in ("note_on", "note_off")]

	assert notes[0].type == "note_on"
	assert notes[0].time == 960
	assert notes[0].note == ambiance.midi_export.BASE_NOTE + 3
	assert notes[1].type == "note_off"
	assert notes[1].time == 96


def test_note_length_follows_placement_length () -> None:

	"""A placement with a length holds its note for that long; zero length falls back to a marker note."""

	placements = [
		ambiance.placement.Placement(time=0.0, item_index=0, length=2.5),
		ambiance.placement.Placement(time=4.0, item_index=1, length=0.0),
	]

	mid = ambiance.midi_export.build_midi_file({"Creek": placements}, bpm=120)
	notes = [msg for msg in mid.tracks[1] if msg.type in ("note_on", "note_off")]

	# 2.5 s at 120 bpm is five beats of 480 ticks.
	assert [(msg.type, msg.time) for msg in notes] == [
		("note_on", 0),
		("note_off", 2400),
		("note_on", 1440),
		("note_off", 96),
	]


def test_origin_shifts_times () -> None:

	"""Times are written relative to the origin, clamped at zero."""

	mid = ambiance.midi_export.build_midi_file({"Wind": [10.5, 9.0]}, bpm=60, origin=10.0)
	note_ons = [msg for msg in mid.tracks[1] if msg.type == "note_on"]

	# 9.0 is before the origin and lands on tick 0, ahead of 10.5.
	assert note_ons[0].time == 0
	assert len(note_ons) == 2


def test_invalid_bpm_raises () -> None:

	"""A non-positive tempo is rejected."""

	with pytest.raises(ValueError):
		ambiance.midi_export.build_midi_file({}, bpm=0)


def test_failed_save_returns_false (tmp_path) -> None:

	"""A file that cannot be written reports failure instead of raising."""

	filename = str(tmp_path / "missing" / "out.mid")

	assert ambiance.midi_export.export_placements({"Birds": _placements(1.0)}, filename) is False
