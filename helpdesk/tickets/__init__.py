"""Ticket domain: models, JSON file repository, summaries and the ticket service."""
