"""Shared utilities for sitelog services."""

# Models and DTOs are imported from their submodules
# Example: from shared.models import Project; from shared.contracts.dto.entry import EntryDTO
