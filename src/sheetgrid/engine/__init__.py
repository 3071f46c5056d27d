"""Grid state engine: store, history, structure and range operations."""
