"""Integrations with remote repository hosts."""
