"""Identifier generation and the link-facing service layer."""
