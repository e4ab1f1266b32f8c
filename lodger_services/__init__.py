"""Cross-module services: workflow transition execution and conflict retry."""
