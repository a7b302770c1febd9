"""
contractforge: contract-driven build pipeline.

Derives a server interface skeleton and a client SDK from one OpenAPI contract,
stamps both with a version resolved from repository tags, packages each into its
own archive and publishes the pair under a shared group and version.
"""

__version__ = "1.0.0"
__author__ = "contractforge Team"
