"""Authentication and authorization.

Learn: Two ways in, one identity out:
1. Credentials → email/password checked against the stored bcrypt hash
2. OAuth (Google) → external claims reconciled onto an Identity + LinkedAccount

Both end in the token enricher, which stamps the identity id and a cached
copy of its role into a JWT. Every protected route reads that token back
through the session exposer and passes the role gate.
"""
