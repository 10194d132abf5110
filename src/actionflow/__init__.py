"""Action extraction, execution, and remediation for model-proposed commands."""

__version__ = "0.1.0"
