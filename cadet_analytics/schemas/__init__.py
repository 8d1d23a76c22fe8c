"""Record and result schemas."""
