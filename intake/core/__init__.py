"""Application-wide settings, constants, logging and exceptions."""
