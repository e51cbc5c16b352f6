"""API layer: REST facade over the entity repositories.

1. No SQLAlchemy imports - only call repository methods
2. entities_api is the canonical, framework-free surface
3. routes/app only translate HTTP to entities_api calls and back
"""
