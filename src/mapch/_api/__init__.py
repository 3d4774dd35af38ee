"""Backend endpoint modules. Internal; may change at any time."""
