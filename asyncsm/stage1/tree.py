# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Computation tree.

Pipeline placement:
  surface text (asyncsm/parser) → tree (this file) → await analysis → ANF
    → liveness → states → automaton

The tree is the typed body of one `async` computation: a `Block` of
statements followed by a result expression. Every node is a frozen
dataclass; passes build new trees instead of editing old ones.

Guiding rules:
- `span` and `node_id` never take part in equality, so a rewritten tree
  compares equal to a hand-written expectation.
- Sequences are tuples so nodes stay hashable.
- `IfStmt`/`MatchStmt` are *normalized* statements: only the ANF pass creates
  them, and their arms are flat statement tuples (no result expression).
  Surface `if`/`match` are the expression nodes `If`/`Match`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from asyncsm.core.span import Span

# Stable identifiers for tree nodes (0 means "not numbered yet").
NodeId = int


class Node:
	"""Base class for all tree nodes."""


class Expr(Node):
	"""Base class for expressions."""


class Stmt(Node):
	"""Base class for statements."""


class Pattern(Node):
	"""Base class for `case` patterns."""


# Operator enums

class BinaryOp(Enum):
	"""Strict binary operators (both operands always evaluated, left first)."""
	ADD = "+"
	SUB = "-"
	MUL = "*"
	DIV = "/"
	MOD = "%"
	EQ = "=="
	NE = "!="
	LT = "<"
	LE = "<="
	GT = ">"
	GE = ">="


class BoolOpKind(Enum):
	"""Short-circuit operators; the right operand is evaluated by-name."""
	AND = "&&"
	OR = "||"


class UnaryOpKind(Enum):
	NOT = "!"
	NEG = "-"


# Expressions

@dataclass(frozen=True)
class Literal(Expr):
	"""Constant: int, float, str, bool or None (unit)."""
	value: object
	span: Span = field(default_factory=Span, compare=False)
	node_id: NodeId = field(default=0, compare=False)


@dataclass(frozen=True)
class Name(Expr):
	"""Reference to a binding (local, promoted, or host environment)."""
	id: str
	span: Span = field(default_factory=Span, compare=False)
	node_id: NodeId = field(default=0, compare=False)


@dataclass(frozen=True)
class Await(Expr):
	"""Suspension point: the value `future` settles with."""
	future: Expr
	span: Span = field(default_factory=Span, compare=False)
	node_id: NodeId = field(default=0, compare=False)


@dataclass(frozen=True)
class Call(Expr):
	"""
	Application `fn(args...)`.

	`by_name` is parallel to `args`: a True entry means the callee receives a
	zero-argument thunk instead of an evaluated value. An empty tuple means
	every argument is by-value.
	"""
	fn: Expr
	args: tuple[Expr, ...] = ()
	by_name: tuple[bool, ...] = ()
	span: Span = field(default_factory=Span, compare=False)
	node_id: NodeId = field(default=0, compare=False)

	def is_by_name(self, index: int) -> bool:
		return index < len(self.by_name) and self.by_name[index]


@dataclass(frozen=True)
class Select(Expr):
	"""Attribute or method access: `subject.name`."""
	subject: Expr
	name: str
	span: Span = field(default_factory=Span, compare=False)
	node_id: NodeId = field(default=0, compare=False)


@dataclass(frozen=True)
class BinOp(Expr):
	op: BinaryOp
	left: Expr
	right: Expr
	span: Span = field(default_factory=Span, compare=False)
	node_id: NodeId = field(default=0, compare=False)


@dataclass(frozen=True)
class BoolOp(Expr):
	op: BoolOpKind
	left: Expr
	right: Expr
	span: Span = field(default_factory=Span, compare=False)
	node_id: NodeId = field(default=0, compare=False)


@dataclass(frozen=True)
class UnaryOp(Expr):
	op: UnaryOpKind
	operand: Expr
	span: Span = field(default_factory=Span, compare=False)
	node_id: NodeId = field(default=0, compare=False)


@dataclass(frozen=True)
class ListLit(Expr):
	items: tuple[Expr, ...] = ()
	span: Span = field(default_factory=Span, compare=False)
	node_id: NodeId = field(default=0, compare=False)


@dataclass(frozen=True)
class Block(Expr):
	"""`{ stats; expr }`; also the root of every computation."""
	stats: tuple[Stmt, ...] = ()
	expr: Expr = field(default_factory=lambda: Literal(None))
	span: Span = field(default_factory=Span, compare=False)
	node_id: NodeId = field(default=0, compare=False)


@dataclass(frozen=True)
class If(Expr):
	"""Conditional expression; a missing else branch yields None."""
	cond: Expr
	then: Block
	else_: Optional[Block] = None
	span: Span = field(default_factory=Span, compare=False)
	node_id: NodeId = field(default=0, compare=False)


@dataclass(frozen=True)
class Case(Node):
	"""One `case pattern [if guard] => body` arm."""
	pattern: Pattern
	body: Expr
	guard: Optional[Expr] = None
	span: Span = field(default_factory=Span, compare=False)
	node_id: NodeId = field(default=0, compare=False)


@dataclass(frozen=True)
class Match(Expr):
	"""Pattern match; arms are tried in order, no match raises MatchError."""
	scrutinee: Expr
	cases: tuple[Case, ...]
	span: Span = field(default_factory=Span, compare=False)
	node_id: NodeId = field(default=0, compare=False)


@dataclass(frozen=True)
class Param(Node):
	name: str
	ty: Optional[str] = None
	span: Span = field(default_factory=Span, compare=False)
	node_id: NodeId = field(default=0, compare=False)


@dataclass(frozen=True)
class Lambda(Expr):
	"""Closure literal `fn(params) => body`."""
	params: tuple[Param, ...]
	body: Expr
	span: Span = field(default_factory=Span, compare=False)
	node_id: NodeId = field(default=0, compare=False)


@dataclass(frozen=True)
class Handler(Node):
	"""`catch (name[: Type]) { body }`; no type catches every Exception."""
	name: str
	body: Block
	type_name: Optional[str] = None
	span: Span = field(default_factory=Span, compare=False)
	node_id: NodeId = field(default=0, compare=False)


@dataclass(frozen=True)
class Try(Expr):
	body: Block
	handlers: tuple[Handler, ...] = ()
	finalizer: Optional[Block] = None
	span: Span = field(default_factory=Span, compare=False)
	node_id: NodeId = field(default=0, compare=False)


# Patterns

@dataclass(frozen=True)
class LiteralPattern(Pattern):
	value: object
	span: Span = field(default_factory=Span, compare=False)
	node_id: NodeId = field(default=0, compare=False)


@dataclass(frozen=True)
class BindPattern(Pattern):
	"""Binds the scrutinee to `name`; with `type_name`, matches instances only."""
	name: str
	type_name: Optional[str] = None
	span: Span = field(default_factory=Span, compare=False)
	node_id: NodeId = field(default=0, compare=False)


@dataclass(frozen=True)
class WildcardPattern(Pattern):
	span: Span = field(default_factory=Span, compare=False)
	node_id: NodeId = field(default=0, compare=False)


# Statements

@dataclass(frozen=True)
class ValDef(Stmt):
	"""
	Binding definition.

	`mutable` marks a `var` (may be the target of Assign). `lazy` defers the
	initializer to the first read. `ty` is the declared type name, used for the
	default value of promoted storage.
	"""
	name: str
	value: Expr
	ty: Optional[str] = None
	mutable: bool = False
	lazy: bool = False
	span: Span = field(default_factory=Span, compare=False)
	node_id: NodeId = field(default=0, compare=False)


@dataclass(frozen=True)
class Assign(Stmt):
	name: str
	value: Expr
	span: Span = field(default_factory=Span, compare=False)
	node_id: NodeId = field(default=0, compare=False)


@dataclass(frozen=True)
class ExprStmt(Stmt):
	expr: Expr
	span: Span = field(default_factory=Span, compare=False)
	node_id: NodeId = field(default=0, compare=False)


@dataclass(frozen=True)
class FunDef(Stmt):
	"""Named local function; visible to its own body (recursion)."""
	name: str
	params: tuple[Param, ...]
	body: Expr
	span: Span = field(default_factory=Span, compare=False)
	node_id: NodeId = field(default=0, compare=False)


@dataclass(frozen=True)
class While(Stmt):
	cond: Expr
	body: Block
	span: Span = field(default_factory=Span, compare=False)
	node_id: NodeId = field(default=0, compare=False)


@dataclass(frozen=True)
class Throw(Stmt):
	value: Expr
	span: Span = field(default_factory=Span, compare=False)
	node_id: NodeId = field(default=0, compare=False)


@dataclass(frozen=True)
class IfStmt(Stmt):
	"""Normalized conditional: atomic `cond`, flat arms (ANF output only)."""
	cond: Expr
	then: tuple[Stmt, ...]
	else_: tuple[Stmt, ...] = ()
	span: Span = field(default_factory=Span, compare=False)
	node_id: NodeId = field(default=0, compare=False)


@dataclass(frozen=True)
class CaseArm(Node):
	"""Arm of a normalized match: pattern binders live in the root frame."""
	pattern: Pattern
	body: tuple[Stmt, ...]
	guard: Optional[Expr] = None
	span: Span = field(default_factory=Span, compare=False)
	node_id: NodeId = field(default=0, compare=False)


@dataclass(frozen=True)
class MatchStmt(Stmt):
	"""Normalized match: atomic `scrutinee`, flat arms (ANF output only)."""
	scrutinee: Expr
	arms: tuple[CaseArm, ...]
	span: Span = field(default_factory=Span, compare=False)
	node_id: NodeId = field(default=0, compare=False)


# Declared-type defaults for promoted storage (reference types start as None).
_ZERO_VALUES: dict[str, object] = {
	"Int": 0,
	"Long": 0,
	"Float": 0.0,
	"Double": 0.0,
	"Bool": False,
	"Boolean": False,
}


def zero_value(ty: Optional[str]) -> object:
	"""Default value for a slot of declared type `ty`."""
	if ty is None:
		return None
	return _ZERO_VALUES.get(ty)


def pattern_binders(pattern: Pattern) -> tuple[str, ...]:
	if isinstance(pattern, BindPattern):
		return (pattern.name,)
	return ()


def is_atomic(expr: Expr, mutable: frozenset[str] | set[str] = frozenset()) -> bool:
	"""
	True for expressions that may be duplicated or reordered freely: literals,
	and names of bindings that are never reassigned.
	"""
	if isinstance(expr, Literal):
		return True
	if isinstance(expr, Name):
		return expr.id not in mutable
	return False


__all__ = [
	"NodeId",
	"Node",
	"Expr",
	"Stmt",
	"Pattern",
	"BinaryOp",
	"BoolOpKind",
	"UnaryOpKind",
	"Literal",
	"Name",
	"Await",
	"Call",
	"Select",
	"BinOp",
	"BoolOp",
	"UnaryOp",
	"ListLit",
	"Block",
	"If",
	"Case",
	"Match",
	"Param",
	"Lambda",
	"Handler",
	"Try",
	"LiteralPattern",
	"BindPattern",
	"WildcardPattern",
	"ValDef",
	"Assign",
	"ExprStmt",
	"FunDef",
	"While",
	"Throw",
	"IfStmt",
	"CaseArm",
	"MatchStmt",
	"zero_value",
	"pattern_binders",
	"is_atomic",
]
