"""
Core logic for the food spot journal.

This package is framework-agnostic: it doesn't import FastAPI, boto3, or
any other infrastructure. Stores are reached through protocols, so the
same code runs against the in-memory, filesystem and R2 backends.
"""
