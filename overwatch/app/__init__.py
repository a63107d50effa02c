"""Application package for the Overwatch core."""
