"""Recurring task engine for the business task dashboard."""
