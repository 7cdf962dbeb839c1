"""
Core package for shared utilities.

Configuration, structured logging, security helpers and the domain
exception hierarchy used across the bookstore backend.
"""
