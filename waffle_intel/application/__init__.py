"""Application layer: use-case services and their DTOs."""
