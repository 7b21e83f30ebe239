"""Accounts, tokens and session gates for learners and administrators."""

from coursemart.auth.actors import ActorType


__all__ = ["ActorType"]
