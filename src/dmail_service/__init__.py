"""Private user-to-user messaging service."""
