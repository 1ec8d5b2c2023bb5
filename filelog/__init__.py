"""Polling file log consumer: discovery, fingerprinting, splitting and checkpoints."""
