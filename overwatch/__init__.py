"""Overwatch: moderation bridge between PRC private servers and the moderation record."""
