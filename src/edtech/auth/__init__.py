"""Authentication and authorization.

Learn: Two ways for a request to prove who it is:
1. Authorization: Bearer <access JWT>  (short-lived, stateless)
2. session_token cookie                 (refresh token, checked against the sessions table)

The gateway in dependencies.py picks exactly one of them per request and
resolves it to a CurrentIdentity (user + role + how they authenticated).
"""
