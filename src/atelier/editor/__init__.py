"""Editor package: editing session, patch directives, and the workspace."""
