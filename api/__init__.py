"""CasePilot HTTP API."""
