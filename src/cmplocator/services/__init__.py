"""Services: CLI and the HTTP resolution service."""
