import ast
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]

DOMAIN_CONFIGS = {
    "members": {
        "paths": [ROOT / "routers" / "members"],
        "allowed_prefixes": ["routers.members", "routers.dependencies"],
    },
    "matching": {
        "paths": [ROOT / "routers" / "matching"],
        "allowed_prefixes": ["routers.matching", "routers.dependencies"],
    },
    "notifications": {
        "paths": [ROOT / "routers" / "notifications"],
        "allowed_prefixes": ["routers.notifications", "routers.dependencies"],
    },
    "payments": {
        "paths": [ROOT / "routers" / "payments"],
        "allowed_prefixes": ["routers.payments", "routers.dependencies"],
    },
}


def _iter_python_files(paths):
    for base in paths:
        if not base.exists():
            continue
        for path in base.rglob("*.py"):
            if path.is_file():
                yield path


def _iter_imported_modules(tree):
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                yield alias.name
        elif isinstance(node, ast.ImportFrom):
            if node.module:
                yield node.module


def _is_cross_domain_import(module_name, allowed_prefixes):
    if not module_name.startswith("routers."):
        return False
    for prefix in allowed_prefixes:
        if module_name == prefix or module_name.startswith(prefix + "."):
            return False
    return True


def test_no_cross_domain_imports():
    """
    Enforces "no cross-domain imports" across all Python modules within each domain,
    including the routers, and also `service.py`/`repository.py`/`schemas.py`.
    Domains reach each other only through the `core.*` facades.
    """
    violations = []
    for domain, config in DOMAIN_CONFIGS.items():
        for path in _iter_python_files(config["paths"]):
            tree = ast.parse(path.read_text(), filename=str(path))
            for module_name in _iter_imported_modules(tree):
                if _is_cross_domain_import(module_name, config["allowed_prefixes"]):
                    violations.append(f"{path}: {module_name} ({domain})")

    if violations:
        joined = "\n".join(sorted(violations))
        raise AssertionError(f"Cross-domain imports detected:\n{joined}")


def test_non_member_domains_do_not_import_member_model():
    """
    Data ownership rule: `Member` and `MemberBook` are owned by the members domain.

    Other domains go through `core.members` for lookups and coupon/free-reveal accounting
    and pass around member ids.
    """
    non_member_paths = [
        ROOT / "routers" / "matching",
        ROOT / "routers" / "notifications",
        ROOT / "routers" / "payments",
    ]
    violations = []
    for path in _iter_python_files(non_member_paths):
        tree = ast.parse(path.read_text(), filename=str(path))
        for node in ast.walk(tree):
            if isinstance(node, ast.ImportFrom) and node.module == "models":
                for alias in node.names:
                    if alias.name in ("Member", "MemberBook"):
                        violations.append(str(path))

    if violations:
        joined = "\n".join(sorted(set(violations)))
        raise AssertionError(
            "Non-member domains import `Member` directly. Use `core.members` instead:\n"
            + joined
        )


def test_payment_model_is_owned_by_payments():
    """`Payment` rows are created only by the payments domain"""
    violations = []
    for domain, config in DOMAIN_CONFIGS.items():
        if domain == "payments":
            continue
        for path in _iter_python_files(config["paths"]):
            tree = ast.parse(path.read_text(), filename=str(path))
            for node in ast.walk(tree):
                if isinstance(node, ast.ImportFrom) and node.module == "models":
                    if any(alias.name == "Payment" for alias in node.names):
                        violations.append(str(path))

    assert violations == []
