"""
Layer boundary contract.

1. cashbook_kernel/** may NOT import cashbook_engines, cashbook_services
   or cashbook_config.  The kernel never depends upward.

2. cashbook_engines/** may NOT import cashbook_services or
   cashbook_config.  Engines receive values, never settings.

3. Engines perform no I/O: they never import the store or db packages.

These tests read source code via AST and never import the modules.
"""

import ast
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[2]


def _python_files(package: str) -> list[Path]:
    return sorted((REPO_ROOT / package).rglob("*.py"))


def _extract_imports(path: Path) -> list[tuple[int, str]]:
    """(line_number, module) for every import in a file."""
    tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom) and node.module:
            results.append((node.lineno, node.module))
    return results


def _violations(package: str, forbidden: tuple[str, ...]) -> list[str]:
    found: list[str] = []
    for path in _python_files(package):
        for lineno, module in _extract_imports(path):
            for prefix in forbidden:
                if module == prefix or module.startswith(f"{prefix}."):
                    found.append(f"  {path.relative_to(REPO_ROOT)}:{lineno} imports '{module}'")
    return found


class TestKernelNoUpwardDependencies:

    FORBIDDEN_PREFIXES = ("cashbook_engines", "cashbook_services", "cashbook_config")

    def test_kernel_files_exist(self):
        assert _python_files("cashbook_kernel")

    def test_kernel_does_not_import_forbidden_packages(self):
        violations = _violations("cashbook_kernel", self.FORBIDDEN_PREFIXES)

        assert not violations, "cashbook_kernel must not depend upward:\n" + "\n".join(
            violations
        )


class TestEnginesArePure:

    def test_engines_do_not_import_services_or_config(self):
        violations = _violations("cashbook_engines", ("cashbook_services", "cashbook_config"))

        assert not violations, "\n".join(violations)

    def test_engines_do_not_touch_storage(self):
        violations = _violations(
            "cashbook_engines",
            ("cashbook_kernel.store", "cashbook_kernel.db", "cashbook_kernel.services", "sqlalchemy"),
        )

        assert not violations, "\n".join(violations)
