"""Core infrastructure: security, errors, logging, cache, scheduler."""
