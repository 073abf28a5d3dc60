"""Storage backends for uploaded media."""
