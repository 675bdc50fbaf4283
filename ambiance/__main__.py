import argparse
import logging
import os
import typing

import yaml

import ambiance.constants
import ambiance.hierarchy
import ambiance.regeneration
import ambiance.session


# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def load_config (config_path: str = 'config.yaml') -> dict:

	"""
	Load configuration from a YAML file.
	"""

	if not os.path.exists(config_path):
		logger.warning(f"Config file {config_path} not found. Using defaults.")
		return {}

	with open(config_path, 'r') as f:
		return yaml.safe_load(f) or {}


def build_session (config: dict) -> ambiance.session.Session:

	"""
	Build a session from a loaded configuration dictionary.
	"""

	hierarchy = ambiance.hierarchy.Hierarchy.from_dict(config.get('document', []))

	selection_config = config.get('selection') or {}
	selection = ambiance.regeneration.TimeSelection()

	if 'start' in selection_config and 'end' in selection_config:
		selection = ambiance.regeneration.TimeSelection.between(float(selection_config['start']), float(selection_config['end']))

	quantum = float((config.get('coordinator') or {}).get('quantum', ambiance.constants.THROTTLE_QUANTUM))

	return ambiance.session.Session(hierarchy, selection=selection, quantum=quantum)


def main (argv: typing.Optional[typing.List[str]] = None) -> None:

	"""
	Main entry point: generate a whole document and optionally export it to MIDI.
	"""

	parser = argparse.ArgumentParser(prog="ambiance", description="Generate noise-driven placements for an ambiance document.")
	parser.add_argument("config", nargs="?", default="config.yaml", help="YAML document to generate")
	parser.add_argument("--midi", help="write the placements to this MIDI file")
	args = parser.parse_args(argv)

	logger.info("Ambiance starting...")

	config = load_config(args.config)
	session = build_session(config)

	if not session.selection.valid:
		logger.warning("No valid time selection configured; nothing to generate")
		return

	session.generate_all()

	for name, placements in session.tracks():
		logger.info(f"{name}: {len(placements)} events")

	output_config = config.get('output') or {}
	midi_path = args.midi or output_config.get('midi')

	if midi_path:
		session.export_midi(midi_path, bpm=float(output_config.get('bpm', 120)))


if __name__ == "__main__":
	main()
