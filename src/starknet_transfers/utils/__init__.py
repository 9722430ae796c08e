"""Helpers for felt decoding and node RPC access."""
