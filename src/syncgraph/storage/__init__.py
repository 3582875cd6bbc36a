"""Local persistence: atomic file writes, locks and snapshot stores."""
