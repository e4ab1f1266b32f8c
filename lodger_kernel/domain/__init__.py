"""Pure domain primitives: clock and workflow value objects. Zero I/O."""
