"""Staj Kontrol - internship management API."""
