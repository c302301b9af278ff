"""Test suite for the EcoScholar qualification pipeline.

Unit tests cover scoring, the decision engine, judgment calls and the
Ollama/PubMed adapters; integration tests drive the orchestrator and
query queue end to end against in-memory fakes. Run `pytest` from the
project root.
"""
