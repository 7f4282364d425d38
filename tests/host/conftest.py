"""
Host-level pytest configuration for the live minikube tunnel suite.

The command-line options are registered in the root conftest. The fixtures
that need a running minikube profile live in `tests.host.minikube`.
"""
