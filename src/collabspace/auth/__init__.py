"""Authentication and authorization.

Learn: Two credential sources resolve to the same CurrentUser:
1. Session cookie (`sid`) → server-side session row → user (preferred)
2. Bearer JWT in the Authorization header → subject claim → user (legacy)

They are tried in that order; the first one that yields a user wins.
"""
