"""Per-group performance metrics and cross-ancestry evaluation."""
