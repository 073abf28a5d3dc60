"""AI-backed metadata extraction and validation."""
