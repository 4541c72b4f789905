"""Artifact acquisition: local library directory and remote repositories."""
