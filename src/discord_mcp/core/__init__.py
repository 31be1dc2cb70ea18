"""Connection lifecycle, access validation, capability checks, and error model."""
