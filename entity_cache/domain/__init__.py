"""Domain layer: exceptions shared by all layers."""
