"""Salon cycles FastAPI application package."""
