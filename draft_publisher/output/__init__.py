"""Content writing."""
