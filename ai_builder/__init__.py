"""AI Builder: multi-provider LLM code generation for a local project template."""

__version__ = "0.1.0"
