"""
Security package: field encryption and JWT verification.

Encryption helpers are async-friendly so they compose with
`helperkit.utils.concurrency.transform_all`.
"""
