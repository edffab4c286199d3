"""Reusable patterns the library domain is built on.

Each module is a self-contained pattern adapted to circulation: rules
engine, repository layer and domain configuration.
"""
