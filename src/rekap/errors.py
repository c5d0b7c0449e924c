"""Failure taxonomy shared by the probes."""

from __future__ import annotations


class RekapError(Exception):
    """Base class for expected, probe-local failures."""


class SourceUnavailable(RekapError):
    """A data source is absent, not running, or access has not been granted."""


class ParseFailure(RekapError):
    """Output from a source could not be interpreted."""


class ProbeTimeout(RekapError):
    """The shared deadline elapsed before the source answered."""
