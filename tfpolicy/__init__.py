"""tfpolicy: YAML policy rules evaluated against Terraform resources."""

__version__ = "0.1.0"
