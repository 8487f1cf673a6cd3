"""Voice session scribe: per-speaker capture, transcription and session summaries."""
