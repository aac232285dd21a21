"""Building blocks for a group chat bot: reminders, group management, MIDI and lookups."""

__version__ = "0.1.0"