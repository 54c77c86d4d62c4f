# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Surface reader for computation trees (lark LALR grammar in grammar.lark).
"""

from .parser import SurfaceSyntaxError, parse_computation, parse_expr

__all__ = ["SurfaceSyntaxError", "parse_computation", "parse_expr"]
