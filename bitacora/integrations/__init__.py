"""Outbound integrations: the tabular store the dashboard reads and writes."""
