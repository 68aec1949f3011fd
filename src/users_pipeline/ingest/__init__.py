"""Readers and loaders for the Raw layer of user records."""
