"""Identity records: roles, email canonicalisation, and the store adapter."""
