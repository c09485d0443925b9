"""Support code imported by generated bindings."""
