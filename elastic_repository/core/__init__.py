"""Core building blocks: errors, settings, logging, search DSL and repositories."""
