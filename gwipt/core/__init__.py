"""Core runtime: repository handle, change pipeline and file watcher."""
