"""Relay client core: wallet derivation, relay protocol and chain reads."""
