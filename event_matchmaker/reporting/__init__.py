"""
event_matchmaker.reporting — aggregate statistics and CLI formatting.

Modules:
  analytics  — relationship_analytics() / recommendation_analytics().
  formatters — ASCII terminal formatters for Typer CLI commands.
"""
