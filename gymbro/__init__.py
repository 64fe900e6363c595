"""gymbro journey progression service."""
