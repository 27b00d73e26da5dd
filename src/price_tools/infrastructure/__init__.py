"""Infrastructure services (logging) shared by the analysis modules."""
