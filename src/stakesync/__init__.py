"""Stakeholder timeline with local/remote state reconciliation."""
