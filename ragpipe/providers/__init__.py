"""Concrete backends: embedding providers, vector stores, document stores."""
