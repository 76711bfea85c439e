"""Skill-defined LLM agents with built-in tools, teams, pipelines and reviews."""

__version__ = "0.1.0"