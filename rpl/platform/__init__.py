"""Operating-system boundary (subprocess execution)."""
