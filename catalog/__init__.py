"""
Catalog package for the BookNest book and review service.

This package contains:
- Book and review models
- Listing query builder
- Rating aggregation
- Ownership and review constraints
- MongoDB and in-memory record stores
- Catalog service orchestration
- Open Library seed importer
"""

__version__ = "1.0.0"
