"""Built-in skills. Each subdirectory is one skill package."""
