"""Integration test package.

These tests drive the cycle orchestrator and the query queue end to end
against in-memory candidate sources, embedders and oracles. They need
no network access.
"""
