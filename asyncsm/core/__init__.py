# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Core helpers shared by every stage: spans, diagnostics, errors, fresh names,
options, and the result-or-failure value.
"""

from .diagnostics import Diagnostic
from .errors import (
	AsyncTransformError,
	AsyncUsageError,
	AutomatonStateError,
	MatchError,
	PromiseAlreadyCompletedError,
	TransformInvariantError,
)
from .fresh import FreshNames
from .options import TransformOptions
from .outcome import Failure, Outcome, Success
from .span import Span

__all__ = [
	"Diagnostic",
	"AsyncTransformError",
	"AsyncUsageError",
	"AutomatonStateError",
	"MatchError",
	"PromiseAlreadyCompletedError",
	"TransformInvariantError",
	"FreshNames",
	"TransformOptions",
	"Failure",
	"Outcome",
	"Success",
	"Span",
]
