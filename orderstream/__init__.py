"""
Order Stream Cache

Ingests order documents from a durable stream, persists them across a
normalized schema and serves cached lookups that survive restarts.
"""

__version__ = "1.0.0"
