"""Data contracts shared between services."""
