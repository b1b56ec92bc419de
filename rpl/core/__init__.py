"""Core building blocks shared by every layer (results, config, exit codes)."""
