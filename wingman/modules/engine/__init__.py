"""
Engine Module - Black Box Interface

Purpose: Evaluate named expression functions exposed by modules
Interface: ExpressionEngine.evaluate(), ExpressionFunction, Evaluation
Hidden: Arity checks, staged appends, per-call locking, error wrapping
"""

from .engine import EvaluateFn, Evaluation, ExpressionEngine, ExpressionFunction, FunctionCall

__all__ = ["ExpressionEngine", "ExpressionFunction", "Evaluation", "EvaluateFn", "FunctionCall"]
