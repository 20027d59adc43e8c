import ast
from pathlib import Path


def _python_files() -> list[Path]:
    src = Path(__file__).resolve().parents[1] / "src"
    roots = [src / "batch_mcp", src / "bmcp"]
    return sorted(
        path for root in roots for path in root.rglob("*.py") if "__pycache__" not in path.parts
    )


def test_all_functions_have_docstring_with_example() -> None:
    missing: list[str] = []
    missing_example: list[str] = []

    for file_path in _python_files():
        module = ast.parse(file_path.read_text(encoding="utf-8"))
        for node in ast.walk(module):
            if not isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                continue
            doc = ast.get_docstring(node)
            location = f"{file_path}:{node.lineno}:{node.name}"
            if not doc:
                missing.append(location)
                continue
            if "Example:" not in doc:
                missing_example.append(location)

    assert not missing, "Missing function docstrings:\n" + "\n".join(missing)
    assert not missing_example, "Docstrings without Example section:\n" + "\n".join(
        missing_example
    )


def test_execution_types_have_docstring_with_example() -> None:
    path = Path(__file__).resolve().parents[1] / "src" / "batch_mcp" / "execution" / "types.py"
    module = ast.parse(path.read_text(encoding="utf-8"))
    undocumented = [
        node.name
        for node in module.body
        if isinstance(node, ast.ClassDef) and "Example:" not in (ast.get_docstring(node) or "")
    ]

    assert not undocumented, "Types without an Example docstring: " + ", ".join(undocumented)
