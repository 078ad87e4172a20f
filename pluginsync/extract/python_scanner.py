"""Python handler scanner — builds handler descriptors from source using AST.

The module is parsed, never imported, so scanning has no side effects and
does not need the handler SDK installed. Recognized conventions:

    __assembly__ = "Acme.Plugins"
    __namespace__ = "Acme.Plugins"
    __version__ = "1.2.0.0"

    @workflow_activity(name="Send mail", group_name="Acme")
    class SendMailActivity(CodeActivity): ...

    class ContactPlugin(Plugin[Contact]):
        @plugin_step("Update", "contact", stage=40, rank=1, unsecure_config="key")
        @filtering_attributes("firstname", "lastname")
        def on_update(self, post_entity_image: Annotated[Contact, image_parameters("firstname")]):
            ...

Decorator arguments must be literals or names bound to literals at module
level. Anything else raises DeclarationError.
"""

from __future__ import annotations

import ast
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from pluginsync.errors import DeclarationError
from pluginsync.extract.descriptors import (
    EXECUTION_CAPABILITY,
    AssemblyInfo,
    FilteringAttributes,
    HandlerCapability,
    ImageParameters,
    MethodDescriptor,
    ModuleDescriptor,
    ParameterDescriptor,
    StepAttribute,
    TypeDescriptor,
    WorkflowActivityAttribute,
)
from pluginsync.model.entities import StepMode, StepStage

DEFAULT_HANDLER_BASES = frozenset({"Plugin", "PluginBase"})
DEFAULT_ACTIVITY_BASES = frozenset({"CodeActivity", "Activity"})
DEFAULT_SDK_VERSION = "9.0.0.0"

# Decorator names, matched on the last dotted segment
STEP_DECORATOR = "plugin_step"
FILTERING_DECORATOR = "filtering_attributes"
IMAGE_MARKER = "image_parameters"
ACTIVITY_DECORATOR = "workflow_activity"
ABSTRACT_DECORATOR = "abstract"


def scan_python_file(
    file_path: str | Path,
    handler_bases: set[str] | frozenset[str] = DEFAULT_HANDLER_BASES,
    activity_bases: set[str] | frozenset[str] = DEFAULT_ACTIVITY_BASES,
    sdk_version: str = DEFAULT_SDK_VERSION,
) -> ModuleDescriptor:
    """Scan a Python source file into a module descriptor.

    Args:
        file_path: Path to the .py file holding handler classes.
        handler_bases: Base class names that mark an execution handler.
        activity_bases: Base class names that mark a workflow activity.
        sdk_version: Version recorded on the execution-handler capability.
    """
    file_path = Path(file_path)
    source = file_path.read_text(errors="replace")
    return scan_python_source(
        source,
        default_name=file_path.stem,
        filename=str(file_path),
        handler_bases=handler_bases,
        activity_bases=activity_bases,
        sdk_version=sdk_version,
    )


def scan_python_source(
    source: str,
    default_name: str = "module",
    filename: str = "<string>",
    handler_bases: set[str] | frozenset[str] = DEFAULT_HANDLER_BASES,
    activity_bases: set[str] | frozenset[str] = DEFAULT_ACTIVITY_BASES,
    sdk_version: str = DEFAULT_SDK_VERSION,
) -> ModuleDescriptor:
    tree = ast.parse(source, filename=filename)
    constants = _module_constants(tree)
    identity = {k: v for k, v in constants.items() if k.startswith("__") and isinstance(v, str)}

    assembly = AssemblyInfo(
        name=identity.get("__assembly__", default_name),
        version=identity.get("__version__", "1.0.0.0"),
        culture=identity.get("__culture__", "neutral"),
        public_key_token=identity.get("__public_key_token__"),
    )
    namespace = identity.get("__namespace__", assembly.name)

    module = ModuleDescriptor(assembly=assembly)
    for node in ast.iter_child_nodes(tree):
        if isinstance(node, ast.ClassDef) and not node.name.startswith("_"):
            module.types.append(
                _parse_class(node, namespace, constants, handler_bases, activity_bases, sdk_version)
            )

    return module


def _module_constants(tree: ast.Module) -> dict[str, object]:
    """Collect literal values bound to names at module level.

    The last binding wins; rebinding a name to something that is not a
    literal drops it.
    """
    constants: dict[str, object] = {}
    for node in ast.iter_child_nodes(tree):
        if isinstance(node, ast.Assign):
            targets, value = node.targets, node.value
        elif isinstance(node, ast.AnnAssign) and node.value is not None:
            targets, value = [node.target], node.value
        else:
            continue

        names = [t.id for t in targets if isinstance(t, ast.Name)]
        if isinstance(value, ast.Name) and value.id in constants:
            literal = constants[value.id]
        else:
            try:
                literal = ast.literal_eval(value)
            except (ValueError, TypeError):
                for name in names:
                    constants.pop(name, None)
                continue

        for name in names:
            constants[name] = literal
    return constants


@dataclass
class _ArgumentReader:
    """Reads decorator arguments of one class member."""

    constants: dict[str, object]
    type_name: str
    member: str

    def value(self, node: ast.expr, argument: str):
        if isinstance(node, ast.Name) and node.id in self.constants:
            return self.constants[node.id]
        try:
            return ast.literal_eval(node)
        except (ValueError, TypeError):
            raise self.error(
                argument, f"'{ast.unparse(node)}' is not a literal or a module-level constant"
            ) from None

    def args(self, call: ast.Call, decorator: str) -> list:
        return [self.value(a, f"{decorator} argument {i + 1}") for i, a in enumerate(call.args)]

    def keywords(self, call: ast.Call, decorator: str, enums: dict[str, type[Enum]] | None = None) -> dict:
        enums = enums or {}
        result = {}
        for kw in call.keywords:
            if kw.arg is None:
                raise self.error(f"{decorator}(**...)", "unpacked keyword arguments are not supported")
            argument = f"{decorator}({kw.arg}=...)"
            if kw.arg in enums:
                result[kw.arg] = self.enum(kw.value, enums[kw.arg], argument)
            else:
                result[kw.arg] = self.value(kw.value, argument)
        return result

    def enum(self, node: ast.expr, enum_cls: type[Enum], argument: str):
        """Resolve ``40``, ``"post_operation"``, ``"PostOperation"`` or ``StepStage.POST_OPERATION``."""
        value = node.attr if isinstance(node, ast.Attribute) else self.value(node, argument)
        if isinstance(value, str):
            key = _enum_key(value)
            if key in enum_cls.__members__:
                return enum_cls[key]
        else:
            try:
                return enum_cls(value)
            except ValueError:
                pass

        choices = ", ".join(m.name.lower() for m in enum_cls)
        raise self.error(argument, f"{value!r} is not one of {choices}")

    def error(self, argument: str, reason: str) -> DeclarationError:
        return DeclarationError(self.type_name, self.member, argument, reason)


def _parse_class(
    node: ast.ClassDef,
    namespace: str,
    constants: dict[str, object],
    handler_bases: set[str] | frozenset[str],
    activity_bases: set[str] | frozenset[str],
    sdk_version: str,
) -> TypeDescriptor:
    full_name = f"{namespace}.{node.name}" if namespace else node.name
    type_desc = TypeDescriptor(name=full_name)

    for base in node.bases:
        base_name, generic_args = _split_base(base)
        if base_name in handler_bases:
            type_desc.capabilities.append(HandlerCapability(EXECUTION_CAPABILITY, sdk_version))
            type_desc.base_generic_arguments = generic_args
        elif base_name in activity_bases:
            type_desc.is_activity = True
            type_desc.base_generic_arguments = generic_args
        elif base_name == "ABC":
            type_desc.is_abstract = True

    for decorator in node.decorator_list:
        name = _decorator_name(decorator)
        if name == ABSTRACT_DECORATOR:
            type_desc.is_abstract = True
        elif name == ACTIVITY_DECORATOR and isinstance(decorator, ast.Call):
            reader = _ArgumentReader(constants, full_name, "class")
            kwargs = reader.keywords(decorator, ACTIVITY_DECORATOR)
            args = reader.args(decorator, ACTIVITY_DECORATOR)
            type_desc.workflow_activity = WorkflowActivityAttribute(
                name=kwargs.get("name", args[0] if args else ""),
                group_name=kwargs.get("group_name", args[1] if len(args) > 1 else ""),
            )

    for item in node.body:
        if isinstance(item, ast.FunctionDef | ast.AsyncFunctionDef):
            reader = _ArgumentReader(constants, full_name, item.name)
            type_desc.methods.append(_parse_method(item, full_name, reader))

    return type_desc


def _parse_method(
    node: ast.FunctionDef | ast.AsyncFunctionDef,
    declaring_type: str,
    reader: _ArgumentReader,
) -> MethodDescriptor:
    method = MethodDescriptor(
        name=node.name,
        declaring_type=declaring_type,
        is_public=not node.name.startswith("_"),
    )

    for decorator in node.decorator_list:
        name = _decorator_name(decorator)
        if name in ("staticmethod", "classmethod"):
            method.is_static = True
        elif name == STEP_DECORATOR and isinstance(decorator, ast.Call):
            method.steps.append(_parse_step(decorator, reader))
        elif name == FILTERING_DECORATOR and isinstance(decorator, ast.Call):
            method.filtering_attributes = FilteringAttributes(
                attributes=[str(a) for a in reader.args(decorator, FILTERING_DECORATOR)]
            )

    for arg in node.args.args + node.args.kwonlyargs:
        if arg.arg in ("self", "cls"):
            continue
        method.parameters.append(_parse_parameter(arg, reader))

    return method


def _parse_step(call: ast.Call, reader: _ArgumentReader) -> StepAttribute:
    args = reader.args(call, STEP_DECORATOR)
    kwargs = reader.keywords(call, STEP_DECORATOR, {"stage": StepStage, "mode": StepMode})

    message_name = kwargs.get("message", args[0] if args else "")
    entity_name = kwargs.get("entity", args[1] if len(args) > 1 else "")

    step = StepAttribute(message_name=message_name, entity_name=entity_name)
    if "stage" in kwargs:
        step.stage = kwargs["stage"]
    if "mode" in kwargs:
        step.mode = kwargs["mode"]
    if "rank" in kwargs:
        rank = kwargs["rank"]
        if isinstance(rank, bool) or not isinstance(rank, int):
            raise reader.error(f"{STEP_DECORATOR}(rank=...)", f"{rank!r} is not an integer")
        step.rank = rank
    if "unsecure_config" in kwargs:
        step.unsecure_config = kwargs["unsecure_config"]
    if "enabled" in kwargs:
        step.enabled = bool(kwargs["enabled"])
    if "delete_async_operation_if_successful" in kwargs:
        step.delete_async_operation_if_successful = bool(
            kwargs["delete_async_operation_if_successful"]
        )
    return step


def _parse_parameter(arg: ast.arg, reader: _ArgumentReader) -> ParameterDescriptor:
    param = ParameterDescriptor(name=arg.arg)
    annotation = arg.annotation
    if annotation is None:
        return param

    if (
        isinstance(annotation, ast.Subscript)
        and _dotted_name(annotation.value).split(".")[-1] == "Annotated"
        and isinstance(annotation.slice, ast.Tuple)
    ):
        elts = annotation.slice.elts
        param.type_name = _dotted_name(elts[0]) or ast.unparse(elts[0])
        for extra in elts[1:]:
            if isinstance(extra, ast.Call) and _decorator_name(extra) == IMAGE_MARKER:
                param.image_parameters = ImageParameters(
                    attributes=[str(a) for a in reader.args(extra, IMAGE_MARKER)]
                )
    else:
        param.type_name = _dotted_name(annotation) or ast.unparse(annotation)

    return param


# --- AST helpers ---


def _split_base(node: ast.expr) -> tuple[str, list[str]]:
    """Return the base class short name and its generic arguments."""
    if isinstance(node, ast.Subscript):
        name = _dotted_name(node.value).split(".")[-1]
        slice_node = node.slice
        elts = slice_node.elts if isinstance(slice_node, ast.Tuple) else [slice_node]
        return name, [_dotted_name(e) or ast.unparse(e) for e in elts]
    return _dotted_name(node).split(".")[-1], []


def _dotted_name(node: ast.expr) -> str:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        parent = _dotted_name(node.value)
        return f"{parent}.{node.attr}" if parent else node.attr
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        return node.value  # String forward reference
    return ""


def _decorator_name(node: ast.expr) -> str:
    target = node.func if isinstance(node, ast.Call) else node
    return _dotted_name(target).split(".")[-1]


def _enum_key(value: str) -> str:
    """``"PostOperation"`` and ``"post-operation"`` become ``"POST_OPERATION"``."""
    words = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", value.strip())
    return re.sub(r"[\s-]+", "_", words).upper()
