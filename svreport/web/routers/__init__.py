"""HTTP routers: local augmentation tables and the upstream proxy."""
