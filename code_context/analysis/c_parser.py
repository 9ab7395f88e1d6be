"""C source extraction with tree-sitter-c."""

from typing import Any

import tree_sitter_c as tsc

from .entities import CodeNode, FileExtraction, NodeKind, Relationship, RelationshipKind
from .parser import TreeSitterParser, end_line, find_descendants, node_text, start_line


def _function_declarator(declarator: Any) -> Any:
    """Unwrap pointer declarators (``char *name(...)``) down to the function one."""
    while declarator is not None and declarator.type != "function_declarator":
        declarator = declarator.child_by_field_name("declarator")
    return declarator


class CParser(TreeSitterParser):
    """Functions, prototypes, structs, enums, typedefs, includes and calls."""

    language_name = "c"

    def __init__(self) -> None:
        super().__init__(tsc.language())

    def get_supported_extensions(self) -> list[str]:
        return [".c", ".h"]

    def extract(self, file_path: str, source: bytes) -> FileExtraction:
        tree = self.parse_tree(source)
        result = FileExtraction(file_path=file_path)
        for child in tree.root_node.children:
            self._visit(child, file_path, result)
        result.nodes = self._drop_local_prototypes(result.nodes)
        return result

    def _visit(self, node: Any, file_path: str, result: FileExtraction) -> None:
        handler = {
            "function_definition": self._function,
            "struct_specifier": self._struct_or_enum,
            "enum_specifier": self._struct_or_enum,
            "type_definition": self._typedef,
            "preproc_include": self._include,
            "declaration": self._prototype,
        }.get(node.type)
        if handler is not None:
            handler(node, file_path, result)
        for child in node.children:
            self._visit(child, file_path, result)

    def _signature(self, node: Any, declarator: Any, name: str) -> str:
        return_type = node_text(node.child_by_field_name("type"))
        params = node_text(declarator.child_by_field_name("parameters")) or "()"
        return f"{return_type} {name}{params}"

    def _function(self, node: Any, file_path: str, result: FileExtraction) -> None:
        declarator = _function_declarator(node.child_by_field_name("declarator"))
        if declarator is None:
            return
        name = node_text(declarator.child_by_field_name("declarator"))
        if not name:
            return
        result.nodes.append(
            CodeNode(
                name=name,
                file_path=file_path,
                kind=NodeKind.FUNCTION,
                signature=self._signature(node, declarator, name),
                body=node_text(node),
                start_line=start_line(node),
                end_line=end_line(node),
            )
        )
        body = node.child_by_field_name("body")
        if body is not None:
            self._calls(body, name, file_path, result)

    def _struct_or_enum(self, node: Any, file_path: str, result: FileExtraction) -> None:
        name = node_text(node.child_by_field_name("name"))
        # Only definitions with a body; typedef'd ones are recorded as types
        if not name or node.child_by_field_name("body") is None:
            return
        if node.parent is not None and node.parent.type == "type_definition":
            return
        kind = NodeKind.STRUCT if node.type == "struct_specifier" else NodeKind.ENUM
        result.nodes.append(
            CodeNode(
                name=name,
                file_path=file_path,
                kind=kind,
                signature=f"{kind.value} {name}",
                body=node_text(node),
                start_line=start_line(node),
                end_line=end_line(node),
            )
        )

    def _typedef(self, node: Any, file_path: str, result: FileExtraction) -> None:
        declarator = node.child_by_field_name("declarator")
        if declarator is None:
            return
        # typedef void (*handler)(int) names "handler"
        identifier = next(find_descendants(declarator, "type_identifier"), declarator)
        name = node_text(identifier)
        if not name:
            return
        result.nodes.append(
            CodeNode(
                name=name,
                file_path=file_path,
                kind=NodeKind.TYPE,
                signature=f"typedef {name}",
                body=node_text(node),
                start_line=start_line(node),
                end_line=end_line(node),
            )
        )

    def _include(self, node: Any, file_path: str, result: FileExtraction) -> None:
        path_node = node.child_by_field_name("path")
        if path_node is None:
            return
        include = node_text(path_node).strip('<>"')
        result.nodes.append(
            CodeNode(
                name=include,
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
                target_name=include,
                target_kind=NodeKind.IMPORT,
                relationship_kind=RelationshipKind.IMPORTS,
            )
        )

    def _prototype(self, node: Any, file_path: str, result: FileExtraction) -> None:
        declarator = _function_declarator(node.child_by_field_name("declarator"))
        if declarator is None:
            return
        # int (*fp)(int); declares a function pointer variable
        identifier = declarator.child_by_field_name("declarator")
        if identifier is None or identifier.type != "identifier":
            return
        name = node_text(identifier)
        result.nodes.append(
            CodeNode(
                name=name,
                file_path=file_path,
                kind=NodeKind.FUNCTION,
                signature=self._signature(node, declarator, name),
                body=node_text(node),
                start_line=start_line(node),
                end_line=end_line(node),
            )
        )

    def _calls(self, body: Any, caller: str, file_path: str, result: FileExtraction) -> None:
        seen: set[str] = set()
        for call in find_descendants(body, "call_expression"):
            function = call.child_by_field_name("function")
            if function is None or function.type not in ("identifier", "field_expression"):
                continue
            callee = node_text(function)
            if callee in seen:
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

    @staticmethod
    def _drop_local_prototypes(nodes: list[CodeNode]) -> list[CodeNode]:
        """Within one file, keep the definition when its prototype is also present."""
        defined = {n.name for n in nodes if n.is_definition}
        return [n for n in nodes if not (n.is_prototype and n.name in defined)]
