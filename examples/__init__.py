"""Runnable examples for blockad."""
