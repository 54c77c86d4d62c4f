# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Stage 4: automaton emission, the runtime StateMachine, and the evaluator that
runs state code.
"""

from .automaton import TERMINAL, StateMachine
from .emitter import AsyncProgram, AutomatonNames, PromotedSlot, emit_automaton
from .interp import Evaluator, Frame, evaluate
from .render import render_automaton

__all__ = [
	"TERMINAL",
	"StateMachine",
	"AsyncProgram",
	"AutomatonNames",
	"PromotedSlot",
	"emit_automaton",
	"Evaluator",
	"Frame",
	"evaluate",
	"render_automaton",
]
