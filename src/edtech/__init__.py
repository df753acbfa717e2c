"""EdTech — backend for an educational content platform.

Accounts, roles, and the authentication/session layer that sits in
front of the content catalog (subjects, lessons, courses).
"""

__version__ = "0.1.0"
