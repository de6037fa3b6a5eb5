"""Business logic: authentication, sessions and token retention."""
