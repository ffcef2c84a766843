"""Provisioning tasks: database creation, extensions, structure dump/load."""
