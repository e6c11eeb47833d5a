"""Shared errors, logging helpers, constants and models for LabSync."""
