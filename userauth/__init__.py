"""User registration, login and session management API."""
