from __future__ import annotations


class DatalensError(Exception):
    """Base class for errors raised by datalens."""


class ParseError(DatalensError):
    """Input text has no usable header and data rows."""


class ConfigError(DatalensError):
    """A configuration file is missing or malformed."""
