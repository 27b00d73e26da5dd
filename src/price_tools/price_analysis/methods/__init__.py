"""Analysis methods built on the Price partition."""
