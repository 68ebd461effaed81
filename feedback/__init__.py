"""Outcome-driven feedback weights and their storage."""
