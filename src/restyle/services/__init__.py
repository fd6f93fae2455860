"""Service layer: external clients, the generation pipeline and the design store."""
