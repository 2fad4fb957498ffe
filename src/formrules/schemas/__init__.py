"""Pydantic models for dependency rules and evaluation results."""
