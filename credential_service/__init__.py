"""Account registration, email verification and session issuance service."""
