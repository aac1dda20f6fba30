"""Typed contracts and record shapes."""
