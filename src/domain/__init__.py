"""
Domain Layer - Pure Business Logic

This layer contains:
- Entities: Account, Session and EnrollmentAttempt
- Exceptions: The typed error taxonomy shared by every layer

No external dependencies allowed in this layer.
"""
