"""Per-caller HTTP request throttling service."""
