"""
okr-guard: authorization and visibility resolution for multi-tenant OKR data.

The engine answers two questions for every request: may this principal perform
this action on this resource, and which records of a listing may they see.
"""

__version__ = "0.1.0"
