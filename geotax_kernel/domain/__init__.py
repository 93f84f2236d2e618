"""Pure domain layer: decimal arithmetic, value objects, clock. Zero I/O."""
