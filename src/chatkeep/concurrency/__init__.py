"""In-process concurrency primitives."""
