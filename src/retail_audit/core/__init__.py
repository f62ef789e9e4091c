"""Core business logic: logic rules, scoring, validation, and data models.

This module is framework-agnostic. It has no dependency on MCP, FastMCP,
or any server framework, and performs no I/O: templates and responses come
in as plain data and results go back out the same way.
"""
