"""Checkout workflow definitions."""
