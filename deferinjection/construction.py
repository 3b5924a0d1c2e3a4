"""
Reflective construction

This module analyses class constructors so that implementation-type
bindings can be constructed without a hand-written factory. It performs:

- Constructor signature analysis with forward reference resolution
- PEP 604 union conversion for annotations that cannot be evaluated directly
- Concrete type detection for the fallback registration source
- Circular dependency tracking through a ContextVar

The resolution context is stored in a ContextVar, so each thread and each
asyncio task sees its own resolution chain.
"""

import ast
import inspect
import types
import typing
from contextvars import ContextVar
from typing import Any, Dict, FrozenSet, List, NamedTuple, Optional, Type, Union

from .exceptions import TypeInferenceError
from .key import ServiceKey, type_name

_NONE_TYPE = type(None)

# X | Y builds types.UnionType on 3.10+
_UNION_ORIGINS = (Union, getattr(types, "UnionType", Union))

# Types the concrete fallback never synthesises
_SCALAR_TYPES = (str, bytes, int, float, bool, complex, list, dict, set, tuple, frozenset, type)


class ConstructorParameter(NamedTuple):
    """A constructor parameter that the container has to supply."""
    name: str
    annotation: Any
    default: Any
    has_default: bool


def get_constructor_parameters(cls: Type) -> List[ConstructorParameter]:
    """Extract the injectable parameters of a class constructor.

    Analyzes the __init__ method signature and resolves type hints,
    including string annotations from ``from __future__ import annotations``.

    Args:
        cls: The class to analyze

    Returns:
        Constructor parameters excluding 'self', *args and **kwargs

    Raises:
        TypeInferenceError: When a parameter has neither a type hint nor a
            default, or the constructor cannot be inspected
    """
    if cls is None or not isinstance(cls, type):
        raise TypeInferenceError(
            f"Cannot analyze constructor of {cls!r}: not a class. "
            f"Register a factory or an instance instead."
        )

    try:
        sig = inspect.signature(cls.__init__)
    except ValueError as e:
        raise TypeInferenceError(
            f"Cannot inspect {cls.__name__}.__init__: {e}. "
            f"This may occur with built-in types or C extension classes."
        ) from e
    except TypeError as e:
        raise TypeInferenceError(
            f"Cannot get signature for {cls.__name__}.__init__: {e}. "
            f"Ensure {cls.__name__} is a class with a valid constructor."
        ) from e

    resolved_hints = _resolve_type_hints(cls)

    parameters = []
    for param_name, param in sig.parameters.items():
        if param_name == 'self':
            continue

        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue

        has_default = param.default is not inspect.Parameter.empty

        if param.annotation is inspect.Parameter.empty:
            if not has_default:
                raise TypeInferenceError(
                    f"Missing type hint for parameter '{param_name}' in {cls.__name__}.__init__. "
                    f"Reflective construction requires type hints for all parameters "
                    f"without defaults."
                )
            parameters.append(ConstructorParameter(param_name, None, param.default, True))
            continue

        param_type = resolved_hints.get(param_name, param.annotation)

        if isinstance(param_type, str):
            param_type = _resolve_string_annotation(cls, param_name, param_type)

        parameters.append(ConstructorParameter(
            param_name,
            _unwrap_optional(param_type),
            param.default if has_default else None,
            has_default,
        ))

    return parameters


def is_concrete_type(service: Any) -> bool:
    """Check whether a type can be constructed by the concrete fallback."""
    if not isinstance(service, type):
        return False
    if service in _SCALAR_TYPES or service.__module__ == 'builtins':
        return False
    if inspect.isabstract(service):
        return False
    if getattr(service, '_is_protocol', False):
        return False
    return True


def _unwrap_optional(annotation: Any) -> Any:
    """Optional[X] is injected as X."""
    if typing.get_origin(annotation) in _UNION_ORIGINS:
        args = [a for a in typing.get_args(annotation) if a is not _NONE_TYPE]
        if len(args) == 1:
            return args[0]
    return annotation


def _resolve_type_hints(cls: Type) -> Dict[str, Any]:
    """Resolve type hints for a constructor using typing.get_type_hints().

    Returns an empty dict if resolution fails, so that the caller falls
    back to manual string annotation resolution.
    """
    try:
        return typing.get_type_hints(cls.__init__)
    except (NameError, RecursionError, TypeError, AttributeError):
        # Local classes, self-referencing types and PEP 604 unions over
        # objects without __or__ end up here
        return {}


def _resolve_string_annotation(cls: Type, param_name: str, annotation: str) -> Any:
    """Attempt to resolve a string annotation against the class's module.

    Raises:
        TypeInferenceError: When the string annotation cannot be resolved
    """
    module = inspect.getmodule(cls)
    if module is None:
        raise TypeInferenceError(
            f"Cannot resolve forward reference '{annotation}' for parameter "
            f"'{param_name}' in {cls.__name__}.__init__. "
            f"The class's module could not be determined."
        )

    namespace: Dict[str, Any] = dict(vars(module))
    namespace.update(vars(cls))
    namespace.setdefault('Union', Union)
    namespace.setdefault('Optional', Optional)

    converted_annotation = _convert_union_syntax(annotation)

    try:
        return eval(converted_annotation, namespace)
    except NameError as e:
        raise TypeInferenceError(
            f"Cannot resolve forward reference '{annotation}' for parameter "
            f"'{param_name}' in {cls.__name__}.__init__. "
            f"Hint: Ensure '{annotation}' is defined at module level before "
            f"the service is resolved."
        ) from e
    except SyntaxError as e:
        raise TypeInferenceError(
            f"Invalid forward reference '{annotation}' for parameter "
            f"'{param_name}' in {cls.__name__}.__init__: {e}."
        ) from e


def _convert_union_syntax(annotation: str) -> str:
    """Convert PEP 604 union syntax (X | Y) to Union[X, Y].

    Example::

        >>> _convert_union_syntax('Database | None')
        'Union[Database, None]'
    """
    if '|' not in annotation:
        return annotation

    try:
        tree = ast.parse(annotation, mode='eval')
    except SyntaxError:
        return annotation

    class UnionTransformer(ast.NodeTransformer):
        def visit_BinOp(self, node: ast.BinOp) -> ast.AST:
            if isinstance(node.op, ast.BitOr):
                members = [self.visit(t) for t in _collect_union_members(node)]
                return ast.Subscript(
                    value=ast.Name(id='Union', ctx=ast.Load()),
                    slice=ast.Tuple(elts=members, ctx=ast.Load()),
                    ctx=ast.Load()
                )
            self.generic_visit(node)
            return node

    new_tree = UnionTransformer().visit(tree)
    ast.fix_missing_locations(new_tree)
    return ast.unparse(new_tree.body)


def _collect_union_members(node: ast.BinOp) -> List[ast.AST]:
    members: List[ast.AST] = []

    def collect(n: ast.AST) -> None:
        if isinstance(n, ast.BinOp) and isinstance(n.op, ast.BitOr):
            collect(n.left)
            collect(n.right)
        else:
            members.append(n)

    collect(node)
    return members


class ResolutionContext:
    """Chain of keys currently being resolved on this thread or task.

    Each nested resolution copies the chain, so sibling resolutions never
    see each other's entries. Bindings are tracked by identity as well,
    because aliases let two different keys reach the same binding.
    """

    def __init__(self, resolving: Optional[List[ServiceKey]] = None,
                 binding_ids: FrozenSet[int] = frozenset()):
        self.resolving: List[ServiceKey] = list(resolving or [])
        self.binding_ids = binding_ids

    def enter(self, key: ServiceKey, binding: Any) -> 'ResolutionContext':
        return ResolutionContext(self.resolving + [key], self.binding_ids | {id(binding)})

    def is_resolving(self, key: ServiceKey, binding: Any) -> bool:
        return key in self.resolving or id(binding) in self.binding_ids

    def describe_cycle(self, key: ServiceKey) -> str:
        return " -> ".join(type_name(k.service) if k.name is None else k.display()
                           for k in self.resolving + [key])


_resolution_context: ContextVar[Optional[ResolutionContext]] = ContextVar(
    '_DEFER_INJECTION_RESOLUTION_CONTEXT',
    default=None
)
