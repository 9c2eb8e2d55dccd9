"""Domain value objects and pure domain functions."""
