"""Media library and upload orchestration."""
