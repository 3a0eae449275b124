"""Flask dashboard and JSON API."""
