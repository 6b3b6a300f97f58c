"""
Dashboard Datastore - client-side cache of remote content collections.

Mirrors press-release and social-media collections from the remote store,
keeps them fresh with bounded-batch synchronization, and reflects local
edits optimistically until the next refresh.
"""

__version__ = "0.1.0"
