"""Predicate parser using Lark. Parses guards, rule values and property expressions."""
from __future__ import annotations
import os
from lark import Lark, Transformer
from lark.exceptions import LarkError
from airlockmc.errors import MalformedModelError
from airlockmc.model import BoolLit, VarRef, NextRef, BinOp, UnaryOp, Expr

_GRAMMAR_PATH = os.path.join(os.path.dirname(__file__), "expr_grammar.lark")

_parser = None

def _get_parser():
    global _parser
    if _parser is None:
        with open(_GRAMMAR_PATH, "r") as f:
            grammar_text = f.read()
        _parser = Lark(grammar_text, parser="lalr")
    return _parser


class ExprTransformer(Transformer):
    """Transforms the Lark parse tree into expression dataclasses."""

    def IDENT(self, token):
        return str(token)

    # ---- Literals and references ----
    def var_ref(self, args):
        return VarRef(args[0])

    def next_ref(self, args):
        return NextRef(args[0])

    def true_const(self, args):
        return BoolLit(True)

    def false_const(self, args):
        return BoolLit(False)

    # ---- Boolean / comparison operators ----
    def neg_op(self, args):
        return UnaryOp("!", args[0])

    def iff_op(self, args):
        return BinOp("<->", args[0], args[1])

    def impl_op(self, args):
        return BinOp("->", args[0], args[1])

    def or_op(self, args):
        return BinOp("|", args[0], args[1])

    def and_op(self, args):
        return BinOp("&", args[0], args[1])

    def eq_op(self, args):
        return BinOp("=", args[0], args[1])

    def ne_op(self, args):
        return BinOp("!=", args[0], args[1])


_transformer = ExprTransformer()


def parse_expr(text: str) -> Expr:
    """Parse a predicate string and return its expression AST."""
    parser = _get_parser()
    try:
        tree = parser.parse(text)
    except LarkError as e:
        raise MalformedModelError(f"cannot parse expression {text!r}: {e}") from e
    return _transformer.transform(tree)
