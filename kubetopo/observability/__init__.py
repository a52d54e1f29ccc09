"""Logging and metrics for kubetopo."""
