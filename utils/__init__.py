"""
Utilities Package for ICU Health Monitor

- logger: loguru sink setup and named loggers
- helpers: time and string helpers
- validators: URL validation and configuration value parsers
"""
