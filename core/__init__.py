"""Registry, signal store and the anticipation worker."""
