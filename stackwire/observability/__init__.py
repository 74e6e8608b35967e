"""Logging and metrics shared by every stackwire component."""
