"""Repository contracts and their storage backends."""
