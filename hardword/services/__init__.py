"""Event engine services: scoring, lifecycle, answer ingestion and fan-out.

This package contains the domain logic imported by HTTP routes and socket
handlers, keeping transport concerns separated from the quiz mechanics.
Routes never mutate event or ledger rows directly.
"""
