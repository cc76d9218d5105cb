"""Query orchestration core for the travel concierge."""
