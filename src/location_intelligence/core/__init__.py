"""Core business logic: scoring, API clients, normalization, and data models.

This module is framework-agnostic. It has no dependency on MCP, FastMCP,
SQLAlchemy, or any server framework.
"""
