"""tapedeck — versioned edit history for MIDI event timelines."""
