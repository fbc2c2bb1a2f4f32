"""Configuration loading (YAML merged over the bundled example)."""
