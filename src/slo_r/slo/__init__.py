"""
SLO List Module
===============

Bounded context for the SLO list.

Responsibilities:
- Track the SLO definition documents of the configured entities
- Refresh current / 7-day / 30-day compliance on a fixed interval
- Merge scope results into one row per document
- Serve list, detail and delete interactions over HTTP
"""
