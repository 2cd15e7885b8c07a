"""
Shared Kernel Module
====================

Generic infrastructure used by the SLO bounded context: structured
logging and HTTP middleware.

DO NOT add SLO business logic to the shared kernel.
"""
