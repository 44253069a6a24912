"""Assessment core: roster reconciliation, answer payloads and validation."""
