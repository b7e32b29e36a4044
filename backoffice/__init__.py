"""Property back office: recurring task scheduling and generation."""
