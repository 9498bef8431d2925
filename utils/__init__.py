"""Shared helpers: angle maths, overlay drawing, logging setup."""
