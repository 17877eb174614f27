"""HTTP surface: app factory, error envelope, shared schemas."""
