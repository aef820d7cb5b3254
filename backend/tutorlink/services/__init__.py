"""Business logic for matching, booking and the session lifecycle."""
