"""Packfile readers and decoders."""
