"""
Kernel Boundary & Invariants Contract.

Tests that enforce the kernel's architectural boundaries:

1. stockline_kernel/** may NOT import stockline_services, stockline_config,
   or stockline_modules. The kernel never depends upward.

2. stockline_kernel/domain/** is pure: no ORM, no DB driver, no kernel
   models at runtime (TYPE_CHECKING imports are allowed).

3. Only the kernel writes ledger entries: module and service code may read
   StockLedgerEntry but never construct one.

4. The kernel invariants declaration is complete and non-empty.

These tests parse source files with ast and change nothing.
"""

import ast
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _python_files(package: str) -> list[Path]:
    return sorted((ROOT / package).rglob("*.py"))


def _parse(path: Path) -> ast.Module | None:
    try:
        return ast.parse(path.read_text(), filename=str(path))
    except (SyntaxError, UnicodeDecodeError):
        return None


def _type_checking_lines(tree: ast.Module) -> set[int]:
    """Line numbers of imports nested under ``if TYPE_CHECKING:``."""
    lines: set[int] = set()
    for node in ast.walk(tree):
        if not isinstance(node, ast.If):
            continue
        test = node.test
        if (isinstance(test, ast.Name) and test.id == "TYPE_CHECKING") or (
            isinstance(test, ast.Attribute) and test.attr == "TYPE_CHECKING"
        ):
            for child in ast.walk(node):
                if isinstance(child, (ast.Import, ast.ImportFrom)):
                    lines.add(child.lineno)
    return lines


def _extract_imports(path: Path, runtime_only: bool = False) -> list[tuple[int, str]]:
    """Extract (line_number, module_string) for all imports in a file."""
    tree = _parse(path)
    if tree is None:
        return []
    skip = _type_checking_lines(tree) if runtime_only else set()

    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if getattr(node, "lineno", None) in skip:
            continue
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom) and node.module:
            results.append((node.lineno, node.module))
    return results


def _matches(module: str, prefixes: tuple[str, ...]) -> bool:
    return any(module == p or module.startswith(f"{p}.") for p in prefixes)


def _rel(path: Path) -> str:
    return str(path.relative_to(ROOT))


# ---------------------------------------------------------------------------
# Test: Kernel has no upward dependencies
# ---------------------------------------------------------------------------

class TestKernelNoUpwardDependencies:
    """stockline_kernel/** must not import stockline_services,
    stockline_config, or stockline_modules."""

    def test_kernel_does_not_import_forbidden_packages(self):
        from stockline_kernel.invariants import FORBIDDEN_KERNEL_IMPORTS

        violations = [
            f"  {_rel(path)}:{lineno} imports '{module}'"
            for path in _python_files("stockline_kernel")
            for lineno, module in _extract_imports(path)
            if _matches(module, FORBIDDEN_KERNEL_IMPORTS)
        ]
        assert not violations, (
            "Kernel boundary violation: stockline_kernel/** must not import "
            "upward packages:\n" + "\n".join(violations)
        )

    def test_modules_do_not_import_services_layer(self):
        violations = [
            f"  {_rel(path)}:{lineno} imports '{module}'"
            for path in _python_files("stockline_modules")
            for lineno, module in _extract_imports(path)
            if _matches(module, ("stockline_services", "stockline_config"))
        ]
        assert not violations, (
            "Layer violation: stockline_modules/** must not import the "
            "operation surface or config:\n" + "\n".join(violations)
        )


# ---------------------------------------------------------------------------
# Test: Kernel domain purity
# ---------------------------------------------------------------------------

class TestKernelDomainPurity:
    """stockline_kernel/domain/** must not import ORM or DB packages."""

    FORBIDDEN_MODULES = (
        "sqlalchemy",
        "psycopg2",
        "sqlite3",
        "stockline_kernel.db",
        "stockline_kernel.models",
    )

    def test_domain_no_runtime_orm_imports(self):
        violations = [
            f"  {_rel(path)}:{lineno} imports '{module}'"
            for path in _python_files("stockline_kernel/domain")
            for lineno, module in _extract_imports(path, runtime_only=True)
            if _matches(module, self.FORBIDDEN_MODULES)
        ]
        assert not violations, (
            "Domain purity violation: stockline_kernel/domain/** must not "
            "import ORM/DB packages at runtime:\n" + "\n".join(violations)
        )


# ---------------------------------------------------------------------------
# Test: Ledger writes stay in the kernel
# ---------------------------------------------------------------------------

class TestLedgerWriteGate:
    """Only stockline_kernel/services/stock_ledger.py constructs entries."""

    ALLOWED_WRITER = "stockline_kernel/services/stock_ledger.py"

    def test_no_ledger_entry_construction_outside_ledger_service(self):
        violations: list[str] = []
        for package in ("stockline_kernel", "stockline_modules", "stockline_services"):
            for path in _python_files(package):
                if _rel(path) == self.ALLOWED_WRITER:
                    continue
                tree = _parse(path)
                if tree is None:
                    continue
                for node in ast.walk(tree):
                    if (
                        isinstance(node, ast.Call)
                        and isinstance(node.func, ast.Name)
                        and node.func.id == "StockLedgerEntry"
                    ):
                        violations.append(f"  {_rel(path)}:{node.lineno}")

        assert not violations, (
            "Ledger write violation: StockLedgerEntry may only be created "
            "by StockLedgerService:\n" + "\n".join(violations)
        )


# ---------------------------------------------------------------------------
# Test: Invariants declaration exists and is complete
# ---------------------------------------------------------------------------

class TestKernelInvariantsDeclaration:
    """The kernel invariants contract must be declared and complete."""

    def test_invariants_module_exists(self):
        from stockline_kernel.invariants import ALL_KERNEL_INVARIANTS
        assert len(ALL_KERNEL_INVARIANTS) > 0

    def test_required_invariants_declared(self):
        from stockline_kernel.invariants import KernelInvariant

        required = {
            "LEDGER_RECONCILIATION",
            "NON_NEGATIVE_STOCK",
            "LEDGER_APPEND_ONLY",
            "LINE_BOUNDS",
            "ALL_OR_NOTHING",
            "NOTIFY_AFTER_COMMIT",
        }
        declared = {inv.name for inv in KernelInvariant}
        missing = required - declared
        assert not missing, f"Missing kernel invariants: {missing}"

    def test_forbidden_imports_declared(self):
        from stockline_kernel.invariants import FORBIDDEN_KERNEL_IMPORTS

        for pkg in ("stockline_services", "stockline_config", "stockline_modules"):
            assert pkg in FORBIDDEN_KERNEL_IMPORTS, (
                f"'{pkg}' not in FORBIDDEN_KERNEL_IMPORTS"
            )
