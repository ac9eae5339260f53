# tests/fixtures/__init__.py
"""Shared test infrastructure for gtgather tests.

- factories: Variant / VariantCall builders, including exact-size records
- fakes: in-memory QueryEngine and a scripted single-participant channel
"""
