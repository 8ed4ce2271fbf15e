# tests/architecture/test_architecture.py
# Architecture tests enforcing layering rules.
# - state and schemas must not import the web stack or the HTTP client
# - the sync client must not import server modules
# - routers must go through SyncContext, never into the store's internals

import ast
import pathlib
import re

import pytest  # type: ignore[import-not-found]

REPO_ROOT = pathlib.Path(__file__).resolve().parents[2]
PACKAGE = REPO_ROOT / "gridsync"

WEB_STACK = {"fastapi", "starlette", "uvicorn", "requests"}


def _iter_py_files(root: pathlib.Path):
    for path in root.rglob("*.py"):
        # skip virtualenv & build outputs
        parts = {"venv", ".venv", "node_modules", "__pycache__"}
        if any(part in parts for part in path.parts):
            continue
        yield path


def _collect_imports(py_path: pathlib.Path) -> set[str]:
    """Return set of fully dotted module names imported by a file."""
    tree = ast.parse(py_path.read_text(encoding="utf-8"), filename=str(py_path))
    imports: set[str] = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                imports.add(alias.name)
        elif isinstance(node, ast.ImportFrom):
            if node.module:
                imports.add(node.module)
    return imports


def _tops(imports: set[str]) -> set[str]:
    return {name.split(".")[0] for name in imports}


# ---------- Tests ----------

@pytest.mark.architecture
@pytest.mark.parametrize("layer", ["state", "schemas"])
def test_core_layers_do_not_import_web_stack(layer):
    offenders = []
    for f in _iter_py_files(PACKAGE / layer):
        bad = _tops(_collect_imports(f)) & WEB_STACK
        if bad:
            offenders.append(f"{f}: {sorted(bad)}")
    assert not offenders, f"{layer} must stay framework-free:\n" + "\n".join(offenders)


@pytest.mark.architecture
def test_client_does_not_import_server_modules():
    forbidden = ("gridsync.routers", "gridsync.main", "gridsync.middleware", "gridsync.dependencies")
    offenders = []
    for f in _iter_py_files(PACKAGE / "client"):
        imports = _collect_imports(f)
        if "fastapi" in _tops(imports) or any(name.startswith(forbidden) for name in imports):
            offenders.append(str(f))
    assert not offenders, "client must only share state/schemas with the server:\n" + "\n".join(offenders)


@pytest.mark.architecture
def test_routers_do_not_reach_into_private_state():
    private = re.compile(r"\._(grid|clues|records|lock|entries)\b")
    offenders = [
        str(f) for f in _iter_py_files(PACKAGE / "routers")
        if private.search(f.read_text(encoding="utf-8"))
    ]
    assert not offenders, "routers must use SyncContext methods:\n" + "\n".join(offenders)
