"""
GitLab Storage Moves - async client and CLI for GitLab snippet repository
storage moves.

Lists, inspects and schedules moves of snippet repositories between
GitLab storage shards through the REST API.
"""

__version__ = "1.0.0"
