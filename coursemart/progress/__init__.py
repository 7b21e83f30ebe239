"""Module completion tracking and course progress."""
