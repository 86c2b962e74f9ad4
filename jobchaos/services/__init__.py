"""Services composing a chaos test run."""
