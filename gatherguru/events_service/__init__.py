"""Staged event creation and public event listings."""
