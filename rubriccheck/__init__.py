"""Rubric check: grade work against a rubric with an LLM and locate the evidence."""

__version__ = "0.1.0"
