"""End-to-end CLI tests against the in-memory secret store."""
