"""Homestay listing catalog."""
