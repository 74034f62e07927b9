"""
Layer boundaries between the invoice packages.

1. invoice_kernel/** may NOT import invoice_engines, invoice_services or
   invoice_config.  The kernel never depends upward.

2. invoice_engines/** may import only the kernel's value helpers and
   logger.  Engines never touch models, sessions or services.

3. invoice_config/** may NOT import invoice_services or invoice_engines.

These tests read source code via AST and cannot break anything.
"""

import ast
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _python_files(package: str) -> list[Path]:
    return sorted((ROOT / package).rglob("*.py"))


def _extract_imports(filepath: Path) -> list[tuple[int, str]]:
    """Extract (line_number, module_string) for all imports in a file."""
    tree = ast.parse(filepath.read_text(), filename=str(filepath))

    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom):
            if node.module:
                results.append((node.lineno, node.module))
    return results


def _violations(package: str, is_forbidden) -> list[str]:
    found: list[str] = []
    for filepath in _python_files(package):
        for lineno, module in _extract_imports(filepath):
            if is_forbidden(module):
                found.append(f"  {filepath.relative_to(ROOT)}:{lineno} imports '{module}'")
    return found


def _under(module: str, prefix: str) -> bool:
    return module == prefix or module.startswith(f"{prefix}.")


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestKernelNoUpwardDependencies:

    FORBIDDEN_PREFIXES = ("invoice_engines", "invoice_services", "invoice_config")

    def test_packages_exist(self):
        assert _python_files("invoice_kernel")

    def test_kernel_does_not_import_outer_layers(self):
        violations = _violations(
            "invoice_kernel",
            lambda m: any(_under(m, p) for p in self.FORBIDDEN_PREFIXES),
        )

        assert not violations, (
            "Kernel boundary violation: invoice_kernel/** must not import "
            "engines, services or config:\n" + "\n".join(violations)
        )


class TestEnginePurity:

    ALLOWED_KERNEL_MODULES = (
        "invoice_kernel.domain.values",
        "invoice_kernel.logging_config",
    )

    def test_engines_import_only_values_and_logger(self):
        def forbidden(module: str) -> bool:
            if _under(module, "invoice_services") or _under(module, "invoice_config"):
                return True
            if _under(module, "sqlalchemy"):
                return True
            if _under(module, "invoice_kernel"):
                return module not in self.ALLOWED_KERNEL_MODULES
            return False

        violations = _violations("invoice_engines", forbidden)

        assert not violations, (
            "Engine purity violation:\n" + "\n".join(violations)
        )


class TestConfigBoundary:

    def test_config_does_not_import_services_or_engines(self):
        violations = _violations(
            "invoice_config",
            lambda m: _under(m, "invoice_services") or _under(m, "invoice_engines"),
        )

        assert not violations, (
            "Config boundary violation:\n" + "\n".join(violations)
        )
