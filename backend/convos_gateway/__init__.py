"""Convos messaging backend: authentication gateway."""
