"""Index lifecycle policies shipped with the operator."""
