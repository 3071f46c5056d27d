"""Long-running server modes."""
