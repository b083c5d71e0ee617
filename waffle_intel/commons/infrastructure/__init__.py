"""Storage providers shared across the application."""
