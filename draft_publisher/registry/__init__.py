"""Canonical vocabularies for extendable metadata fields."""
