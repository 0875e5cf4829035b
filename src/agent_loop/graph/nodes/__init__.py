"""Cycle nodes, one module per step."""
