"""Gradle Kotlin DSL scripts as a tree of blocks, assignments and calls.

Android module build files are mostly nested configuration blocks holding
assignments and calls::

    android {
        namespace = "com.example.app"
        defaultConfig {
            minSdk = flutter.minSdkVersion?.toInt() ?: 21
            manifestPlaceholders["appAuthRedirectScheme"] = "com.example.app"
        }
        buildTypes {
            getByName("release") {
                isMinifyEnabled = false
            }
        }
    }

:func:`parse_script` parses the text with the tree-sitter Kotlin grammar and
keeps this declarative subset as a :class:`GradleScript`. Imports, class and
function declarations and loops are skipped. Expressions outside the subset
(comparisons, arithmetic, lambdas) become :class:`Unsupported` and fail only
when evaluated. Values stay unevaluated; :mod:`android_build.evaluator`
resolves them against the provider objects of a build.
"""
import dataclasses
import logging
import re
from typing import Iterator, Optional, Union

import tree_sitter_kotlin as tsk
from tree_sitter import Language, Node, Parser

from .errors import GradleScriptError

logger = logging.getLogger(__name__)

_KOTLIN_LANGUAGE = Language(tsk.language())
_PARSER: Optional[Parser] = None


def _get_parser() -> Parser:
    global _PARSER
    if _PARSER is None:
        _PARSER = Parser(_KOTLIN_LANGUAGE)
    return _PARSER


# Expressions


@dataclasses.dataclass(frozen=True)
class Literal:
    value: Union[str, int, float, bool, None]


@dataclasses.dataclass(frozen=True)
class Reference:
    name: str


@dataclasses.dataclass(frozen=True)
class Member:
    receiver: 'Expr'
    name: str
    safe: bool = False


@dataclasses.dataclass(frozen=True)
class Call:
    receiver: Optional['Expr']
    name: str
    args: tuple['Expr', ...] = ()
    named_args: tuple[tuple[str, 'Expr'], ...] = ()
    safe: bool = False


@dataclasses.dataclass(frozen=True)
class Index:
    receiver: 'Expr'
    key: 'Expr'


@dataclasses.dataclass(frozen=True)
class Elvis:
    left: 'Expr'
    right: 'Expr'


@dataclasses.dataclass(frozen=True)
class Pair:
    first: 'Expr'
    second: 'Expr'


@dataclasses.dataclass(frozen=True)
class NotNull:
    value: 'Expr'


@dataclasses.dataclass(frozen=True)
class Template:
    """A string with ``$name`` or ``${expr}`` parts."""
    parts: tuple[Union[str, 'Expr'], ...]


@dataclasses.dataclass(frozen=True)
class Unsupported:
    """Valid Kotlin that a build configuration never needs, e.g. ``a != null``."""
    kind: str
    text: str


Expr = Union[Literal, Reference, Member, Call, Index, Elvis, Pair, NotNull, Template, Unsupported]


# Statements


class Scope:
    statements: tuple['Statement', ...]

    def blocks(self, name: Optional[str] = None) -> Iterator['Block']:
        for statement in self.statements:
            if isinstance(statement, Block) and (name is None or statement.name == name):
                yield statement

    def block(self, name: str) -> Optional['Block']:
        # Gradle applies repeated blocks in order, so later ones win per field
        found = list(self.blocks(name))
        if len(found) == 0:
            return None
        if len(found) == 1:
            return found[0]
        return Block(
            name=name,
            args=found[0].args,
            named_args=found[0].named_args,
            statements=tuple(s for b in found for s in b.statements),
            line=found[0].line,
        )

    def assignments(self) -> Iterator['Assignment']:
        for statement in self.statements:
            if isinstance(statement, Assignment):
                yield statement

    def assigned(self, name: str) -> Optional['Expr']:
        value: Optional[Expr] = None
        for assignment in self.assignments():
            if assignment.operator == "=" and assignment.target == Reference(name):
                value = assignment.value
        return value

    def invocations(self) -> Iterator['Invocation']:
        for statement in self.statements:
            if isinstance(statement, Invocation):
                yield statement

    def declarations(self) -> Iterator['Declaration']:
        for statement in self.statements:
            if isinstance(statement, Declaration):
                yield statement


@dataclasses.dataclass(frozen=True)
class Block(Scope):
    name: str
    args: tuple['Expr', ...]
    named_args: tuple[tuple[str, 'Expr'], ...]
    statements: tuple['Statement', ...]
    line: int

    @property
    def label(self) -> Optional[str]:
        """The string naming a container element, e.g. ``"release"`` in ``getByName("release")``."""
        if len(self.args) > 0 and isinstance(self.args[0], Literal) and isinstance(self.args[0].value, str):
            return self.args[0].value
        return None


@dataclasses.dataclass(frozen=True)
class Assignment:
    target: 'Expr'
    operator: str
    value: 'Expr'
    line: int


@dataclasses.dataclass(frozen=True)
class Invocation:
    """A call statement with its infix modifiers, e.g. ``id("x") version "1.0" apply false``."""
    expr: 'Expr'
    modifiers: tuple[tuple[str, 'Expr'], ...]
    line: int

    def modifier(self, name: str) -> Optional['Expr']:
        for key, value in self.modifiers:
            if key == name:
                return value
        return None


@dataclasses.dataclass(frozen=True)
class Declaration:
    name: str
    value: 'Expr'
    line: int


Statement = Union[Block, Assignment, Invocation, Declaration]


@dataclasses.dataclass(frozen=True)
class ParseError:
    """An ``ERROR`` or ``MISSING`` node of the syntax tree."""
    line: int
    column: int
    message: str


@dataclasses.dataclass(frozen=True)
class GradleScript(Scope):
    statements: tuple[Statement, ...]
    errors: tuple[ParseError, ...] = ()


# Syntax tree


_COMMENT_TYPES: set[str] = {"comment", "line_comment", "multiline_comment"}

# Declarations a build configuration never reads
_SKIPPED_TYPES: set[str] = {
    "shebang_line", "file_annotation", "package_header", "import_list", "import_header", "lambda_parameters",
    "label", "annotation", "class_declaration", "object_declaration", "function_declaration", "type_alias",
    "for_statement", "while_statement", "do_while_statement", "getter", "setter",
}

_INTEGER_TYPES: set[str] = {"integer_literal", "long_literal", "hex_literal", "bin_literal", "unsigned_literal"}

_ESCAPE_PATTERN: re.Pattern = re.compile(r"\\(u[0-9A-Fa-f]{4}|.)")

_STRING_ESCAPES: dict[str, str] = {"n": "\n", "t": "\t", "r": "\r", "b": "\b"}


def _unescape(text: str) -> str:
    def _replace(matcher: re.Match) -> str:
        escaped = matcher.group(1)
        if len(escaped) == 5:
            return chr(int(escaped[1:], 16))
        return _STRING_ESCAPES.get(escaped, escaped)

    return _ESCAPE_PATTERN.sub(_replace, text)


def _line(node: Node) -> int:
    return node.start_point[0] + 1


def _is_operand(node: Node) -> bool:
    # "null" is an anonymous token in the grammar but a value in the script
    return (node.is_named and node.type not in _COMMENT_TYPES) or node.type == "null"


def _operands(node: Node) -> list[Node]:
    return [i for i in node.children if _is_operand(i)]


def _find(node: Node, node_type: str) -> Optional[Node]:
    for child in node.children:
        if child.type == node_type:
            return child
    return None


def _collect_errors(node: Node, errors: list[ParseError]):
    if node.type == "ERROR" or node.is_missing:
        row, column = node.start_point
        message = f"MISSING({node.type})" if node.is_missing else "ERROR"
        errors.append(ParseError(line=row + 1, column=column + 1, message=message))
    for child in node.children:
        _collect_errors(child, errors)


class _TreeReader:
    def __init__(self, source: bytes):
        self._source: bytes = source

    def _text(self, node: Node) -> str:
        return self._source[node.start_byte:node.end_byte].decode("utf-8")

    def _between(self, left: Node, right: Node) -> str:
        return self._source[left.end_byte:right.start_byte].decode("utf-8").strip()

    # Statements

    def statements(self, node: Node) -> tuple[Statement, ...]:
        result: list[Statement] = []
        for child in _operands(node):
            if child.type in ("statements", "block", "control_structure_body"):
                result.extend(self.statements(child))
            elif child.type == "ERROR":
                logger.debug("Skip unparsable text at line %d", _line(child))
            elif child.type in _SKIPPED_TYPES:
                logger.debug("Skip %s at line %d", child.type, _line(child))
            else:
                result.extend(self._statement(child))
        return tuple(result)

    def _statement(self, node: Node) -> list[Statement]:
        line = _line(node)
        if node.type == "property_declaration":
            declaration = self._declaration(node)
            return [declaration] if declaration is not None else []
        elif node.type == "assignment":
            operands = _operands(node)
            if len(operands) < 2:
                return []
            target, value = operands[0], operands[-1]
            return [Assignment(
                target=self._expression(target),
                operator=self._between(target, value),
                value=self._expression(value),
                line=line,
            )]
        elif node.type == "if_expression":
            return self._conditional(node)
        elif node.type == "call_expression" and self._trailing_lambda(node) is not None:
            return [self._block(node)]
        elif node.type == "infix_expression":
            return [self._invocation(node)]
        return [Invocation(expr=self._expression(node), modifiers=(), line=line)]

    def _declaration(self, node: Node) -> Optional[Declaration]:
        variable = _find(node, "variable_declaration")
        name = _find(variable, "simple_identifier") if variable is not None else None
        value = None
        after_equals = False
        for child in node.children:
            if not child.is_named and child.type == "=":
                after_equals = True
            elif after_equals and _is_operand(child):
                value = child
                break
        if name is None or value is None:
            logger.debug("Skip declaration without a value at line %d", _line(node))
            return None
        return Declaration(name=self._text(name).strip("`"), value=self._expression(value), line=_line(node))

    def _invocation(self, node: Node) -> Invocation:
        # id("x") version "1.0" apply false nests to the left
        modifiers: list[tuple[str, Expr]] = []
        head = node
        while head.type == "infix_expression":
            operands = _operands(head)
            if len(operands) != 3 or self._text(operands[1]) == "to":
                break
            modifiers.insert(0, (self._text(operands[1]), self._expression(operands[2])))
            head = operands[0]
        return Invocation(expr=self._expression(head), modifiers=tuple(modifiers), line=_line(node))

    def _conditional(self, node: Node) -> list[Statement]:
        # Branches are kept as sibling blocks named "if" and "else"
        operands = _operands(node)
        if len(operands) == 0:
            return []
        condition, bodies = operands[0], operands[1:]
        result: list[Statement] = [Block(
            name="if",
            args=(self._expression(condition),),
            named_args=(),
            statements=self._body(bodies[0]) if len(bodies) > 0 else (),
            line=_line(node),
        )]
        if len(bodies) > 1:
            nested = self._else_if(bodies[1])
            if nested is not None:
                result.extend(self._conditional(nested))
            else:
                result.append(Block(
                    name="else", args=(), named_args=(), statements=self._body(bodies[1]), line=_line(bodies[1])
                ))
        return result

    def _body(self, node: Node) -> tuple[Statement, ...]:
        if node.type in ("control_structure_body", "block"):
            return self.statements(node)
        return tuple(self._statement(node))

    def _else_if(self, node: Node) -> Optional[Node]:
        if node.type == "if_expression":
            return node
        operands = _operands(node)
        if len(operands) == 1 and operands[0].type == "if_expression" and not self._text(node).startswith("{"):
            return operands[0]
        return None

    @staticmethod
    def _trailing_lambda(node: Node) -> Optional[Node]:
        suffix = _find(node, "call_suffix")
        annotated = _find(suffix, "annotated_lambda") if suffix is not None else None
        return _find(annotated, "lambda_literal") if annotated is not None else None

    def _block(self, node: Node) -> Block:
        head = self._call(node)
        if isinstance(head, Call) and head.name == "" and isinstance(head.receiver, Call):
            # create("release") followed by a separate lambda suffix
            head = head.receiver
        name = head.name if isinstance(head, Call) else ""
        args = head.args if isinstance(head, Call) else ()
        named_args = head.named_args if isinstance(head, Call) else ()
        return Block(
            name=name,
            args=args,
            named_args=named_args,
            statements=self.statements(self._trailing_lambda(node)),
            line=_line(node),
        )

    # Expressions

    def _expression(self, node: Node) -> Expr:
        node_type = node.type
        operands = _operands(node)
        if node_type == "simple_identifier":
            return Reference(self._text(node).strip("`"))
        elif node_type in _INTEGER_TYPES or node_type == "real_literal":
            return self._number(node)
        elif node_type == "boolean_literal":
            return Literal(self._text(node) == "true")
        elif node_type in ("null", "null_literal"):
            return Literal(None)
        elif node_type == "character_literal":
            return Literal(_unescape(self._text(node)[1:-1]))
        elif node_type == "string_literal":
            return self._template(node)
        elif node_type in ("parenthesized_expression", "interpolated_expression") and len(operands) == 1:
            return self._expression(operands[0])
        elif node_type in ("navigation_expression", "indexing_expression", "directly_assignable_expression") \
                and len(operands) > 0:
            expr = self._expression(operands[0])
            for suffix in operands[1:]:
                expr = self._suffix(expr, suffix)
            return expr
        elif node_type == "call_expression":
            return self._call(node)
        elif node_type == "elvis_expression" and len(operands) >= 2:
            return Elvis(self._expression(operands[0]), self._expression(operands[-1]))
        elif node_type == "infix_expression" and len(operands) == 3 and self._text(operands[1]) == "to":
            return Pair(self._expression(operands[0]), self._expression(operands[2]))
        elif node_type == "postfix_expression" and len(operands) > 0 and self._text(node).endswith("!!"):
            return NotNull(self._expression(operands[0]))
        elif node_type == "as_expression" and len(operands) > 0:
            # A cast keeps the value
            return self._expression(operands[0])
        return Unsupported(node_type, self._text(node))

    def _number(self, node: Node) -> Expr:
        text = self._text(node).replace("_", "")
        try:
            if node.type == "real_literal":
                return Literal(float(text.rstrip("fF")))
            return Literal(int(text.rstrip("uUlL"), 0))
        except ValueError:
            return Unsupported(node.type, text)

    def _suffix(self, receiver: Expr, suffix: Node) -> Expr:
        if suffix.type == "navigation_suffix":
            name = _find(suffix, "simple_identifier")
            if name is not None:
                return Member(receiver, self._text(name).strip("`"), self._text(suffix).startswith("?."))
        elif suffix.type == "indexing_suffix":
            keys = _operands(suffix)
            if len(keys) == 1:
                return Index(receiver, self._expression(keys[0]))
        elif suffix.type == "call_suffix":
            args, named_args = self._arguments(suffix)
            return self._with_callee(receiver, args, named_args)
        return Unsupported(suffix.type, self._text(suffix))

    def _call(self, node: Node) -> Expr:
        operands = _operands(node)
        if len(operands) < 2 or operands[-1].type != "call_suffix":
            return Unsupported(node.type, self._text(node))
        args, named_args = self._arguments(operands[-1])
        return self._with_callee(self._expression(operands[0]), args, named_args)

    @staticmethod
    def _with_callee(callee: Expr, args: tuple[Expr, ...], named_args: tuple[tuple[str, Expr], ...]) -> Expr:
        if isinstance(callee, Reference):
            return Call(None, callee.name, args, named_args)
        elif isinstance(callee, Member):
            return Call(callee.receiver, callee.name, args, named_args, callee.safe)
        # The callee is itself a call, e.g. a trailing lambda after the arguments
        return Call(callee, "", args, named_args)

    def _arguments(self, suffix: Node) -> tuple[tuple[Expr, ...], tuple[tuple[str, Expr], ...]]:
        args: list[Expr] = []
        named_args: list[tuple[str, Expr]] = []
        value_arguments = _find(suffix, "value_arguments")
        if value_arguments is None:
            return (), ()
        for argument in value_arguments.children:
            if argument.type != "value_argument":
                continue
            operands = [i for i in _operands(argument) if i.type != "annotation"]
            if len(operands) == 0:
                continue
            if _find(argument, "=") is not None and len(operands) >= 2:
                named_args.append((self._text(operands[0]).strip("`"), self._expression(operands[-1])))
            else:
                args.append(self._expression(operands[-1]))
        return tuple(args), tuple(named_args)

    def _template(self, node: Node) -> Expr:
        parts: list[Union[str, Expr]] = []
        for child in node.children:
            if child.type in ("string_content", "character_escape_seq", "escape_sequence"):
                text = _unescape(self._text(child))
                if len(parts) > 0 and isinstance(parts[-1], str):
                    parts[-1] += text
                else:
                    parts.append(text)
            elif child.type == "interpolated_identifier":
                parts.append(Reference(self._text(child)))
            elif child.type == "interpolated_expression" and len(_operands(child)) == 0:
                parts.append(Reference(self._text(child).strip()))
            elif child.is_named and child.type not in _COMMENT_TYPES:
                parts.append(self._expression(child))
        if all(isinstance(i, str) for i in parts):
            return Literal("".join(parts))
        return Template(tuple(parts))


def parse_script(text: str) -> GradleScript:
    source = text.encode("utf-8")
    tree = _get_parser().parse(source)
    errors: list[ParseError] = []
    _collect_errors(tree.root_node, errors)
    return GradleScript(statements=_TreeReader(source).statements(tree.root_node), errors=tuple(errors))


def parse_expression(text: str, line: int = 1) -> Expr:
    script = parse_script(text)
    if len(script.errors) > 0 or len(script.statements) != 1:
        raise GradleScriptError(f"Invalid expression {text!r}", line)
    statement = script.statements[0]
    if not isinstance(statement, Invocation) or len(statement.modifiers) > 0:
        raise GradleScriptError(f"Invalid expression {text!r}", line)
    return statement.expr
