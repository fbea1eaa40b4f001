"""Command line entry points for cadence workflows."""
