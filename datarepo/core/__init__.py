"""Configuration, logging and database session helpers."""
