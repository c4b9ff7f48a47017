"""Directory paging, favorites and detail handoff services."""
