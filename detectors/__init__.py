"""Detection rules and the pipeline that runs them."""
