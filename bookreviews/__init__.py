"""
Book Reviews Application Package

Review lifecycle, moderation and rating aggregation for the book catalogue.

Package Structure:
- config.py: Application configuration using Pydantic Settings
- database.py: SQLAlchemy database connection and session management
- main.py: FastAPI application factory and configuration
- dependencies.py: Dependency injection functions
- models/: SQLAlchemy ORM models
- schemas/: Pydantic request/response schemas
- routers/: API route handlers
- services/: Business logic (reviews, ratings, security, rate limiting)
"""

__version__ = "0.1.0"
