"""Storage, sandbox and deployment backends."""
