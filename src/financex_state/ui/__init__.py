"""Operator-facing CLI for the state register."""
