"""Upstream model client and model-name selection."""
