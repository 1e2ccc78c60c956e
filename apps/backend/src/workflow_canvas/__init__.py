"""Workflow canvas backend: graph editing over an ordered step list."""
