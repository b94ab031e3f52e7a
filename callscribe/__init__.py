"""Speaker-attributed transcription of two-party calls, live and batch."""
