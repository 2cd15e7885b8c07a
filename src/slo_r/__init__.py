"""
SLO-R
=====

Service Level Objective list service.

Tracks SLO definition documents stored in entity storage, refreshes their
compliance metrics on a fixed interval and exposes the list, document detail
and deletion through an HTTP API.
"""

__version__ = "1.0.0"
