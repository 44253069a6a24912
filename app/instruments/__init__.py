"""Instrument definitions, age groups and instrument resolution."""
