"""Optional accuracy passes: keyterm hints and transcript correction."""
