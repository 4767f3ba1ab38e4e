"""Admin console routes: product, order and user management."""
