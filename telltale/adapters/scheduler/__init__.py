"""Background runners for fire-and-forget delivery."""
