"""Cross-language monorepo build and release planning."""
