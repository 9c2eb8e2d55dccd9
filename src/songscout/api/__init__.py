"""HTTP operator surface."""
