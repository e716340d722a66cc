"""
Core business logic for the coaching assistant.

This module is framework-agnostic - it doesn't import FastAPI, Snowflake,
or any infrastructure concerns. Storage and the remote model are reached
through the protocols in coaching.stores and coaching.provider.
"""
