"""App factory, cross-cutting request policies and rate limiting."""
