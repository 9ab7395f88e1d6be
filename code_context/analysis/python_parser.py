"""Python source extraction with tree-sitter-python."""

from typing import Any

import tree_sitter_python as tspython

from ..indexer_logging import get_logger
from .entities import CodeNode, FileExtraction, NodeKind, Relationship, RelationshipKind
from .parser import TreeSitterParser, end_line, find_descendants, node_text, start_line

logger = get_logger()


class PythonParser(TreeSitterParser):
    """Functions, methods, classes, imports, calls and base classes."""

    language_name = "python"

    def __init__(self) -> None:
        super().__init__(tspython.language())

    def get_supported_extensions(self) -> list[str]:
        return [".py"]

    def extract(self, file_path: str, source: bytes) -> FileExtraction:
        tree = self.parse_tree(source)
        result = FileExtraction(file_path=file_path)
        if self.has_syntax_errors(tree):
            logger.debug(f"Syntax errors detected in {file_path}, extracting what parsed")
        self._visit(tree.root_node, file_path, result)
        return result

    def _visit(self, node: Any, file_path: str, result: FileExtraction) -> None:
        if node.type == "function_definition":
            self._function(node, file_path, result)
        elif node.type == "class_definition":
            self._class(node, file_path, result)
        elif node.type in ("import_statement", "import_from_statement"):
            self._import(node, file_path, result)
        for child in node.children:
            self._visit(child, file_path, result)

    def _function(self, node: Any, file_path: str, result: FileExtraction) -> None:
        name = node_text(node.child_by_field_name("name"))
        if not name:
            return
        params = node_text(node.child_by_field_name("parameters")) or "()"
        returns = node.child_by_field_name("return_type")
        signature = f"def {name}{params}"
        if returns is not None:
            signature += f" -> {node_text(returns)}"

        # Decorators belong to the node's span
        span = node.parent if node.parent and node.parent.type == "decorated_definition" else node
        result.nodes.append(
            CodeNode(
                name=name,
                file_path=file_path,
                kind=NodeKind.FUNCTION,
                signature=signature,
                body=node_text(span),
                start_line=start_line(span),
                end_line=end_line(span),
            )
        )

        body = node.child_by_field_name("body")
        if body is not None:
            self._calls(body, name, file_path, result)

    def _calls(self, body: Any, caller: str, file_path: str, result: FileExtraction) -> None:
        seen: set[str] = set()
        for call in find_descendants(body, "call"):
            function = call.child_by_field_name("function")
            if function is None:
                continue
            if function.type == "identifier":
                callee = node_text(function)
            elif function.type == "attribute":
                # obj.method() resolves by method name
                callee = node_text(function.child_by_field_name("attribute"))
            else:
                continue
            if not callee or callee in seen:
                continue
            seen.add(callee)
            result.relationships.append(
                Relationship(
                    source_file_path=file_path,
                    source_name=caller,
                    source_kind=NodeKind.FUNCTION,
                    target_name=callee,
                    target_kind=NodeKind.FUNCTION,
                    relationship_kind=RelationshipKind.CALLS,
                )
            )

    def _class(self, node: Any, file_path: str, result: FileExtraction) -> None:
        name = node_text(node.child_by_field_name("name"))
        if not name:
            return
        superclasses = node.child_by_field_name("superclasses")
        bases = []
        if superclasses is not None:
            for arg in superclasses.named_children:
                if arg.type == "identifier":
                    bases.append(node_text(arg))
                elif arg.type == "attribute":
                    bases.append(node_text(arg.child_by_field_name("attribute")))

        signature = f"class {name}"
        if superclasses is not None:
            signature += node_text(superclasses)
        span = node.parent if node.parent and node.parent.type == "decorated_definition" else node
        result.nodes.append(
            CodeNode(
                name=name,
                file_path=file_path,
                kind=NodeKind.CLASS,
                signature=signature,
                body=node_text(span),
                start_line=start_line(span),
                end_line=end_line(span),
            )
        )
        for base in bases:
            result.relationships.append(
                Relationship(
                    source_file_path=file_path,
                    source_name=name,
                    source_kind=NodeKind.CLASS,
                    target_name=base,
                    target_kind=NodeKind.CLASS,
                    relationship_kind=RelationshipKind.EXTENDS,
                )
            )

    def _import(self, node: Any, file_path: str, result: FileExtraction) -> None:
        if node.type == "import_from_statement":
            modules = [node.child_by_field_name("module_name")]
        else:
            modules = node.children_by_field_name("name")

        for module in modules:
            if module is None:
                continue
            if module.type == "aliased_import":
                module = module.child_by_field_name("name")
            module_name = node_text(module)
            if not module_name:
                continue
            result.nodes.append(
                CodeNode(
                    name=module_name,
                    file_path=file_path,
                    kind=NodeKind.IMPORT,
                    signature=node_text(node).strip(),
                    body=node_text(node),
                    start_line=start_line(node),
                    end_line=start_line(node),
                )
            )
            result.relationships.append(
                Relationship(
                    source_file_path=file_path,
                    source_name=file_path,
                    source_kind=NodeKind.IMPORT,
                    target_name=module_name,
                    target_kind=NodeKind.IMPORT,
                    relationship_kind=RelationshipKind.IMPORTS,
                )
            )
