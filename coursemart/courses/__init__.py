"""Courses and their learning modules."""
