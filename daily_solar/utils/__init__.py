"""
Inspection helpers for the daily insolation outputs.
"""
