"""
helperkit: small service helpers built around authenticated field encryption.

Applications call `helperkit.utils.logger.configure_logging()` once at startup.
"""

__version__ = "0.1.0"
