"""HTTP control surface for a running copy session."""
