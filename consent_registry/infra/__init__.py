"""Infrastructure adapters (wallet signing)."""
