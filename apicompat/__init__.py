"""Backward-compatibility verification for versioned RPC API metadata."""
