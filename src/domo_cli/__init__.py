"""Domo command-line client.

Client library and CLI for the Domo public API: authenticated requests
against datasets, streams, users, accounts and workflow projects, with an
edit-in-your-editor flow for creating and updating objects.
"""

__version__ = "0.1.0"
