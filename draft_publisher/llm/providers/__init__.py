"""Provider implementations for AI completion."""
