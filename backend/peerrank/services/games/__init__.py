"""Game domain services: lifecycle, ranking and the expiry sweep.

This package contains the domain logic imported by HTTP routes, the cron
endpoint and CLI commands, keeping transport concerns separated from core
game mechanics.
"""
