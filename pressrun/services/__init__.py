"""Service layer. Every entry point takes explicit tenant/store ids."""
