"""Presence tracking and call-signaling relay core."""
