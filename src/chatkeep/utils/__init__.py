"""Hashing and key material helpers."""
