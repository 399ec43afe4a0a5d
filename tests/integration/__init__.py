"""Integration tests that drive the installed CLI end to end."""
