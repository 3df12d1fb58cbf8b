"""Core warm transfer logic."""
