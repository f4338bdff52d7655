"""Application-layer ports implemented by outer layers."""
