"""User accounts, authentication, bans and follows."""
