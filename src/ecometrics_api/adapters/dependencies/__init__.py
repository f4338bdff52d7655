"""Composition helpers wiring settings, sessions, and services."""
