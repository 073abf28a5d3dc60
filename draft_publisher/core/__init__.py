"""Core draft types, scanning and component rendering."""
