"""Sample file backing stores and the WAV container."""
