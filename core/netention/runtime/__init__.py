"""Runtime plumbing: event bus, per-note locks, scheduler, engine and HTTP server."""
