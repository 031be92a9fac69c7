"""Shared helpers: wire encoding, hashing, units and polling."""
