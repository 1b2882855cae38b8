"""Tip payments backend for StreetPerformersMap."""
