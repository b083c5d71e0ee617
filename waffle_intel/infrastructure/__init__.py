"""Adapters for external services: AI APIs, ffmpeg and the database schema."""
