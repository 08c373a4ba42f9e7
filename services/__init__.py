"""Lead services: mutation path, post-commit events and batch automation."""
