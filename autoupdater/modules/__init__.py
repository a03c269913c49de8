"""Collaborator services used by the update supervisor."""
