"""Biometric attendance pipeline package.

This package is organized by feature modules (devices, gateway, punches,
reconciliation, ...) with a thin Flask controller layer and service/repository
layers underneath.
"""
