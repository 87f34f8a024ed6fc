"""Credential and certificate management."""
from .certificates import provision_certificates
from .credentials import generate_password

__all__ = ["generate_password", "provision_certificates"]
