"""Keep the repository root importable when running pytest from a checkout."""
