"""Calendar domain services."""
