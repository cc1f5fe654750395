#!/usr/bin/env python3
"""
Invariantes de arquitetura do Revenue OS Kernel.

Roda da raiz do repositório, sem flags. Gate de CI: exit 1 se houver violação.

Regras:
1. Policies isoladas: arquivos em app/services/kernel/policies/ não importam
   dispatcher, outbox, jobs/workers nem canais de side-effect, e não contêm
   tokens de acesso direto a rede/outbox (mesmo sem import).
2. Entry points (app/main.py, app/api/) e o front-end (dashboard/) não
   importam o dispatcher, por nenhum caminho absoluto ou relativo.
3. Só o dispatcher e a allowlist (protocolo do outbox, migrations, backfill,
   tooling de QA, testes) escrevem no channel_outbox.

Imports Python são extraídos com ast (relativos resolvidos para o nome
absoluto); arquivos que não parseiam caem no parser por regex.

Usage:
    python3 scripts/kernel_invariants.py
"""

import ast
import os
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional

IGNORE_DIRS = {
    ".git",
    "node_modules",
    "__pycache__",
    ".venv",
    "venv",
    "build",
    "dist",
    ".pytest_cache",
    ".mypy_cache",
    ".ruff_cache",
    "coverage",
    "htmlcov",
    ".tox",
    ".eggs",
}

PY_EXT = ".py"
SQL_EXT = ".sql"
FRONTEND_EXTS = (".ts", ".tsx", ".js", ".jsx")

RULE_POLICY_IMPORTS = "policy_no_side_effect_imports"
RULE_POLICY_BODY = "policy_no_side_effects_in_body"
RULE_ENTRYPOINT_DISPATCHER = "entrypoints_do_not_import_dispatcher"
RULE_FRONTEND_DISPATCHER = "frontend_do_not_import_dispatcher"
RULE_OUTBOX_WRITES = "only_dispatcher_or_allowlist_writes_channel_outbox"

RULES = (
    RULE_POLICY_IMPORTS,
    RULE_POLICY_BODY,
    RULE_ENTRYPOINT_DISPATCHER,
    RULE_FRONTEND_DISPATCHER,
    RULE_OUTBOX_WRITES,
)

# Módulos proibidos em policies (regex sobre o nome pontuado)
FORBIDDEN_POLICY_IMPORTS = (
    r"(^|\.)dispatcher($|\.)",
    r"channel_outbox",
    r"(^|\.)outbox($|\.)",
    r"(^|\.)(jobs|workers|tasks)($|\.)",
    r"(^|\.)supabase($|\.)",
    r"(^|\.)(twilio|resend|sendgrid|smtplib|email|sms|voice|vapi|elevenlabs)($|\.)",
    r"^(httpx|requests|aiohttp|urllib|urllib3|socket|subprocess)($|\.)",
)

# Tokens proibidos no corpo das policies (acesso disfarçado/dinâmico)
FORBIDDEN_POLICY_TOKENS = (
    "supabase.",
    'table("channel_outbox")',
    "table('channel_outbox')",
    'from_("channel_outbox")',
    "from_('channel_outbox')",
    "functions.invoke",
    "httpx.",
    "requests.",
    "urlopen(",
    "import_module(",
    "__import__(",
)

ORM_WRITE_RE = re.compile(
    r"""\.(?:table|from_)\(\s*["']channel_outbox["']\s*\)[\s\\]*\.(insert|upsert|update|delete)\s*\("""
)

SQL_WRITE_RES = (
    ("INSERT", re.compile(r"\binsert\s+into\s+(?:public\.)?\"?channel_outbox\b", re.IGNORECASE)),
    ("UPDATE", re.compile(r"\bupdate\s+(?:only\s+)?(?:public\.)?\"?channel_outbox\b", re.IGNORECASE)),
    ("DELETE", re.compile(r"\bdelete\s+from\s+(?:public\.)?\"?channel_outbox\b", re.IGNORECASE)),
)

PY_IMPORT_RE = re.compile(
    r"^[ \t]*(?:from[ \t]+(\.*[\w.]*)[ \t]+import[ \t]+\(?([\w \t,.*]+)|import[ \t]+([\w.]+(?:[ \t]*,[ \t]*[\w.]+)*))",
    re.MULTILINE,
)

FRONTEND_IMPORT_RE = re.compile(
    r"""(?:\bfrom\s+|\bimport\s*\(\s*|\brequire\s*\(\s*|^\s*import\s+)["']([^"']+)["']""",
    re.MULTILINE,
)

FRONTEND_DISPATCHER_RE = re.compile(r"(^|[/.])dispatcher(\.\w+)?$")


@dataclass(frozen=True)
class Violation:
    rule: str
    file: str
    detail: str


@dataclass(frozen=True)
class ImportRef:
    """Import encontrado: como escrito (raw) e resolvido para nome absoluto."""

    raw: str
    resolved: str
    line: int


@dataclass
class InvariantConfig:
    """Caminhos relativos à raiz (sempre com "/")."""

    policy_prefix: str = "app/services/kernel/policies/"
    dispatcher_file: str = "app/services/kernel/dispatcher.py"
    entrypoints: tuple = ("app/main.py", "app/api/")
    frontend_prefix: str = "dashboard/"
    outbox_write_allowlist: tuple = (
        "app/services/kernel/dispatcher.py",
        "app/services/kernel/outbox.py",
        "migrations/",
        "app/workers/outbox_backfill.py",
        "scripts/qa_",
        "scripts/kernel_invariants.py",
        "tests/",
    )
    forbidden_policy_imports: tuple = FORBIDDEN_POLICY_IMPORTS
    forbidden_policy_tokens: tuple = FORBIDDEN_POLICY_TOKENS
    ignore_dirs: set = field(default_factory=lambda: set(IGNORE_DIRS))

    @property
    def dispatcher_module(self) -> str:
        return module_name(self.dispatcher_file)


# =============================================================================
# Arquivos e imports
# =============================================================================


def iter_source_files(root: Path, ignore_dirs: set) -> Iterator[str]:
    """Caminhos relativos (posix) de todos os arquivos, pulando diretórios ignorados."""
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in ignore_dirs)
        for filename in sorted(filenames):
            full = Path(dirpath) / filename
            yield full.relative_to(root).as_posix()


def module_name(rel_path: str) -> str:
    """app/services/x.py → app.services.x (pacote para __init__.py)."""
    parts = rel_path[: -len(PY_EXT)].split("/") if rel_path.endswith(PY_EXT) else rel_path.split("/")
    if parts and parts[-1] == "__init__":
        parts = parts[:-1]
    return ".".join(parts)


def _package_of(rel_path: str) -> str:
    modulo = module_name(rel_path)
    if rel_path.endswith("__init__.py"):
        return modulo
    return modulo.rpartition(".")[0]


def resolve_relative(package: str, level: int, module: Optional[str]) -> str:
    """Resolve `from ..x import y` (level=2, module="x") a partir do pacote."""
    if level == 0:
        return module or ""
    base = package.split(".") if package else []
    subir = level - 1
    if subir:
        base = base[:-subir] if subir <= len(base) else []
    if module:
        base = base + module.split(".")
    return ".".join(base)


def _imports_via_ast(tree: ast.AST, package: str) -> list[ImportRef]:
    refs: list[ImportRef] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                refs.append(ImportRef(raw=alias.name, resolved=alias.name, line=node.lineno))
        elif isinstance(node, ast.ImportFrom):
            raw = "." * node.level + (node.module or "")
            base = resolve_relative(package, node.level, node.module)
            refs.append(ImportRef(raw=raw, resolved=base, line=node.lineno))
            for alias in node.names:
                if alias.name == "*":
                    continue
                nome = f"{base}.{alias.name}" if base else alias.name
                alias_raw = f"{raw}.{alias.name}" if node.module else raw + alias.name
                refs.append(ImportRef(raw=alias_raw, resolved=nome, line=node.lineno))
    return refs


def _imports_via_regex(content: str, package: str) -> list[ImportRef]:
    refs: list[ImportRef] = []
    for match in PY_IMPORT_RE.finditer(content):
        line = content.count("\n", 0, match.start()) + 1
        origem, nomes, simples = match.group(1), match.group(2), match.group(3)
        if simples:
            for nome in simples.split(","):
                nome = nome.strip()
                refs.append(ImportRef(raw=nome, resolved=nome, line=line))
            continue
        level = len(origem) - len(origem.lstrip("."))
        modulo = origem.lstrip(".") or None
        base = resolve_relative(package, level, modulo)
        refs.append(ImportRef(raw=origem, resolved=base, line=line))
        for nome in nomes.replace("(", " ").replace(")", " ").split(","):
            nome = nome.strip().split(" ")[0]
            if nome and nome != "*":
                refs.append(ImportRef(raw=f"{origem}.{nome}", resolved=f"{base}.{nome}" if base else nome, line=line))
    return refs


def extract_python_imports(rel_path: str, content: str) -> list[ImportRef]:
    """Imports de um arquivo Python, com relativos resolvidos."""
    package = _package_of(rel_path)
    try:
        tree = ast.parse(content, filename=rel_path)
    except SyntaxError:
        return _imports_via_regex(content, package)
    return _imports_via_ast(tree, package)


def extract_frontend_imports(content: str) -> list[str]:
    """Alvos de `from "<module>"`, `import("<module>")` e `require("<module>")`."""
    return FRONTEND_IMPORT_RE.findall(content)


def _is_allowed(rel_path: str, allowlist: tuple) -> bool:
    for allowed in allowlist:
        if allowed.endswith("/") or allowed.endswith("_"):
            if rel_path.startswith(allowed):
                return True
        elif rel_path == allowed:
            return True
    return False


def _is_entrypoint(rel_path: str, entrypoints: tuple) -> bool:
    for entry in entrypoints:
        if entry.endswith("/"):
            if rel_path.startswith(entry):
                return True
        elif rel_path == entry:
            return True
    return False


def _imports_dispatcher(ref: ImportRef, dispatcher_module: str) -> bool:
    resolved = ref.resolved
    if resolved == dispatcher_module or resolved.startswith(dispatcher_module + "."):
        return True
    return re.search(r"(^|\.)dispatcher$", ref.raw) is not None


# =============================================================================
# Regras
# =============================================================================


def check_policy_file(rel_path: str, content: str, config: InvariantConfig) -> list[Violation]:
    violations: list[Violation] = []
    padroes = [re.compile(p) for p in config.forbidden_policy_imports]

    # Uma violação por statement de import
    linhas_vistas: set[int] = set()
    for ref in extract_python_imports(rel_path, content):
        if ref.line in linhas_vistas:
            continue
        if any(p.search(alvo) for p in padroes for alvo in (ref.resolved, ref.raw)):
            linhas_vistas.add(ref.line)
            violations.append(Violation(
                RULE_POLICY_IMPORTS, rel_path, f"imports {ref.raw} (line {ref.line})"
            ))

    for token in config.forbidden_policy_tokens:
        if token in content:
            violations.append(Violation(
                RULE_POLICY_BODY, rel_path, f"contains forbidden token {token!r}"
            ))

    return violations


def check_entrypoint_file(rel_path: str, content: str, config: InvariantConfig) -> list[Violation]:
    dispatcher_module = config.dispatcher_module
    for ref in extract_python_imports(rel_path, content):
        if _imports_dispatcher(ref, dispatcher_module):
            return [Violation(
                RULE_ENTRYPOINT_DISPATCHER, rel_path, f"imports dispatcher via {ref.raw} (line {ref.line})"
            )]

    # import dinâmico por string
    if re.search(rf"""["']{re.escape(dispatcher_module)}["']""", content):
        return [Violation(
            RULE_ENTRYPOINT_DISPATCHER, rel_path, f"references {dispatcher_module} by name"
        )]
    return []


def check_frontend_file(rel_path: str, content: str) -> list[Violation]:
    for alvo in extract_frontend_imports(content):
        if FRONTEND_DISPATCHER_RE.search(alvo):
            return [Violation(RULE_FRONTEND_DISPATCHER, rel_path, f"imports dispatcher via {alvo}")]
    return []


def find_outbox_writes(content: str) -> list[str]:
    """Tipos de escrita no channel_outbox encontrados (insert/update/upsert/delete, SQL)."""
    encontrados = [f".{m.group(1)}()" for m in ORM_WRITE_RE.finditer(content)]
    for kind, pattern in SQL_WRITE_RES:
        if pattern.search(content):
            encontrados.append(kind)
    return sorted(set(encontrados))


def check_outbox_writes(rel_path: str, content: str, config: InvariantConfig) -> list[Violation]:
    if rel_path == config.dispatcher_file or _is_allowed(rel_path, config.outbox_write_allowlist):
        return []
    escritas = find_outbox_writes(content)
    if not escritas:
        return []
    return [Violation(
        RULE_OUTBOX_WRITES,
        rel_path,
        f"writes channel_outbox ({', '.join(escritas)}) outside dispatcher/allowlist",
    )]


def check_repository(root: Path, config: Optional[InvariantConfig] = None) -> list[Violation]:
    """
    Aplica todas as regras na árvore.

    Args:
        root: Raiz do repositório
        config: Caminhos/allowlists (default: layout deste repositório)

    Returns:
        Violações encontradas
    """
    config = config or InvariantConfig()
    violations: list[Violation] = []

    for rel_path in iter_source_files(root, config.ignore_dirs):
        is_py = rel_path.endswith(PY_EXT)
        is_sql = rel_path.endswith(SQL_EXT)
        is_frontend = rel_path.startswith(config.frontend_prefix) and rel_path.endswith(FRONTEND_EXTS)
        if not (is_py or is_sql or is_frontend):
            continue

        try:
            content = (root / rel_path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            continue

        if is_py and rel_path.startswith(config.policy_prefix):
            violations.extend(check_policy_file(rel_path, content, config))

        if is_py and _is_entrypoint(rel_path, config.entrypoints):
            violations.extend(check_entrypoint_file(rel_path, content, config))

        if is_frontend:
            violations.extend(check_frontend_file(rel_path, content))

        if is_py or is_sql:
            violations.extend(check_outbox_writes(rel_path, content, config))

    return violations


# =============================================================================
# Relatório
# =============================================================================


def format_report(violations: list[Violation]) -> str:
    """Um bloco ❌ por regra violada; linha única de sucesso se limpo."""
    if not violations:
        return "✅ Revenue OS Kernel invariants PASSED"

    linhas = ["Revenue OS Kernel invariants FAILED. Fix violations before merging.", ""]
    for rule in RULES:
        da_regra = sorted((v for v in violations if v.rule == rule), key=lambda v: (v.file, v.detail))
        if not da_regra:
            continue
        linhas.append(f"❌ {rule} ({len(da_regra)})")
        linhas.extend(f"- {v.file}: {v.detail}" for v in da_regra)
        linhas.append("")

    linhas.append("RULES (non-negotiable): modules emit events; kernel decides; dispatcher acts; policies never execute.")
    return "\n".join(linhas)


def main() -> int:
    violations = check_repository(Path.cwd())
    print(format_report(violations))
    return 1 if violations else 0


if __name__ == "__main__":
    sys.exit(main())
