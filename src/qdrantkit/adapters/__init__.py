"""Concrete adapters for the port interfaces."""
