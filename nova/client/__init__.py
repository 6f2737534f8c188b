"""Async client for the chat streaming endpoint."""
