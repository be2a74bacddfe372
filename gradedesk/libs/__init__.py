"""Shared libraries: configuration, backend transport, session context and LLM agents."""
