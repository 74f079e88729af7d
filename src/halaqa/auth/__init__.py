"""Authentication primitives.

- password: bcrypt hashing behind the credential check
- jwt: access / refresh tokens that make up a session
- dependencies: Bearer token → CurrentAccount for route handlers
"""
