"""Accepted-roots store for Certificate Transparency logs."""
