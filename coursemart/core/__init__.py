"""Core infrastructure: request context, logging, errors, database."""
