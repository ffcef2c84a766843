"""Provisioning configuration: models, YAML loading and resolution."""
