"""
FastAPI RESTful API for the BookNest catalog.

This module provides a REST API for:
- Book catalog browsing, search and pagination
- Book detail with reviews and rating distribution
- Owner-gated book and review mutations
- Bearer-token authentication
"""
