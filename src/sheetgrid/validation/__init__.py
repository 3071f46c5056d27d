"""Value validation, formatting and type inference."""
