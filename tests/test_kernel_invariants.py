"""
Testes do checker de invariantes de arquitetura do kernel.

Cada cenário monta uma árvore mínima em tmp_path e roda as regras.
"""
from pathlib import Path

import pytest

from scripts.kernel_invariants import (
    RULE_ENTRYPOINT_DISPATCHER,
    RULE_FRONTEND_DISPATCHER,
    RULE_OUTBOX_WRITES,
    RULE_POLICY_BODY,
    RULE_POLICY_IMPORTS,
    InvariantConfig,
    Violation,
    check_repository,
    extract_python_imports,
    find_outbox_writes,
    format_report,
    main,
    resolve_relative,
)

POLICY_DIR = "app/services/kernel/policies"

POLICY_LIMPA = '''"""Policy pura."""
from app.services.kernel.types import KernelDecision, KernelEvent
from ._helpers import get_string


def handle(event: KernelEvent) -> list[KernelDecision]:
    return []
'''

ROUTE_LIMPA = '''from fastapi import APIRouter
from app.services.kernel.runtime import process_event

router = APIRouter()
'''


def _escrever(root: Path, rel_path: str, content: str) -> None:
    path = root / rel_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


@pytest.fixture
def repo_limpo(tmp_path):
    """Árvore mínima sem violações."""
    _escrever(tmp_path, f"{POLICY_DIR}/lead_response.py", POLICY_LIMPA)
    _escrever(tmp_path, f"{POLICY_DIR}/_helpers.py", "def get_string(p, k):\n    return p.get(k)\n")
    _escrever(tmp_path, "app/api/routes/kernel.py", ROUTE_LIMPA)
    _escrever(tmp_path, "app/main.py", "from app.api.routes import kernel\n")
    _escrever(
        tmp_path,
        "app/services/kernel/dispatcher.py",
        'supabase.table("channel_outbox").update({"status": "sent"}).eq("id", x).execute()\n',
    )
    _escrever(
        tmp_path,
        "app/services/kernel/outbox.py",
        'supabase.table("channel_outbox").insert(row).execute()\n',
    )
    _escrever(tmp_path, "migrations/001.sql", "INSERT INTO channel_outbox (id) VALUES (1);\n")
    _escrever(tmp_path, "dashboard/src/page.tsx", 'import { api } from "../lib/api";\n')
    return tmp_path


def _da_regra(violations: list[Violation], rule: str) -> list[Violation]:
    return [v for v in violations if v.rule == rule]


class TestRepositorioLimpo:
    def test_sem_violacoes(self, repo_limpo):
        assert check_repository(repo_limpo) == []

    def test_main_exit_zero(self, repo_limpo, monkeypatch, capsys):
        monkeypatch.chdir(repo_limpo)

        assert main() == 0
        assert capsys.readouterr().out.strip() == "✅ Revenue OS Kernel invariants PASSED"

    def test_repositorio_real_sem_violacoes(self):
        raiz = Path(__file__).resolve().parent.parent

        assert check_repository(raiz) == []


class TestPolicyIsolada:
    """Policies não importam dispatcher, outbox nem canais de side-effect."""

    def test_policy_importando_dispatcher(self, repo_limpo):
        _escrever(
            repo_limpo,
            f"{POLICY_DIR}/bad.py",
            "from app.services.kernel.dispatcher import execute_decision\n",
        )

        violations = _da_regra(check_repository(repo_limpo), RULE_POLICY_IMPORTS)

        assert len(violations) == 1
        assert violations[0].file == f"{POLICY_DIR}/bad.py"

    @pytest.mark.parametrize("linha", [
        "from ..dispatcher import execute_decision",
        "from .. import dispatcher",
        "from ..outbox import begin_outbox_item",
        "import app.services.kernel.outbox",
        "from app.services.supabase import supabase",
        "import httpx",
        "from app.api.routes.jobs import router",
    ])
    def test_imports_proibidos(self, repo_limpo, linha):
        _escrever(repo_limpo, f"{POLICY_DIR}/bad.py", linha + "\n")

        violations = _da_regra(check_repository(repo_limpo), RULE_POLICY_IMPORTS)

        assert len(violations) == 1

    @pytest.mark.parametrize("corpo", [
        'mod = __import__("httpx")\n',
        'import importlib\nm = importlib.import_module("x")\n',
        'client.table("channel_outbox")\n',
        "supabase.rpc('x')\n",
    ])
    def test_tokens_proibidos_no_corpo(self, repo_limpo, corpo):
        _escrever(repo_limpo, f"{POLICY_DIR}/bad.py", corpo)

        violations = _da_regra(check_repository(repo_limpo), RULE_POLICY_BODY)

        assert len(violations) == 1

    def test_arquivo_que_nao_parseia_usa_regex(self, repo_limpo):
        _escrever(
            repo_limpo,
            f"{POLICY_DIR}/quebrado.py",
            "from app.services.kernel.dispatcher import x\ndef handle(:\n",
        )

        violations = _da_regra(check_repository(repo_limpo), RULE_POLICY_IMPORTS)

        assert [v.file for v in violations] == [f"{POLICY_DIR}/quebrado.py"]


class TestEntrypoints:
    """Entry points não importam o dispatcher."""

    @pytest.mark.parametrize("rel_path,linha", [
        ("app/api/routes/events.py", "from ...services.kernel import dispatcher"),
        ("app/api/routes/events.py", "from ...services.kernel.dispatcher import execute_decision"),
        ("app/api/routes/jobs/outbox.py", "from ....services.kernel.dispatcher import dispatch_attempt"),
        ("app/main.py", "import app.services.kernel.dispatcher as d"),
        ("app/main.py", "from app.services.kernel import dispatcher, runtime"),
    ])
    def test_import_do_dispatcher(self, repo_limpo, rel_path, linha):
        _escrever(repo_limpo, rel_path, linha + "\n")

        violations = _da_regra(check_repository(repo_limpo), RULE_ENTRYPOINT_DISPATCHER)

        assert len(violations) == 1
        assert violations[0].file == rel_path

    def test_import_dinamico_por_nome(self, repo_limpo):
        _escrever(
            repo_limpo,
            "app/api/routes/events.py",
            'import importlib\nmod = importlib.import_module("app.services.kernel.dispatcher")\n',
        )

        violations = _da_regra(check_repository(repo_limpo), RULE_ENTRYPOINT_DISPATCHER)

        assert len(violations) == 1
        assert "by name" in violations[0].detail

    def test_servico_pode_importar_dispatcher(self, repo_limpo):
        _escrever(
            repo_limpo,
            "app/services/kernel/runtime.py",
            "from .dispatcher import execute_decision\n",
        )

        assert check_repository(repo_limpo) == []

    @pytest.mark.parametrize("linha", [
        'import { executeDecision } from "../services/kernel/dispatcher";',
        "const d = await import('@/kernel/dispatcher.ts');",
        'const d = require("./dispatcher");',
    ])
    def test_frontend(self, repo_limpo, linha):
        _escrever(repo_limpo, "dashboard/src/actions.ts", linha + "\n")

        violations = _da_regra(check_repository(repo_limpo), RULE_FRONTEND_DISPATCHER)

        assert len(violations) == 1


class TestEscritasNoOutbox:
    """Só dispatcher + allowlist escrevem no channel_outbox."""

    def test_update_fora_da_allowlist(self, repo_limpo):
        _escrever(
            repo_limpo,
            "app/services/campanhas.py",
            'supabase.table("channel_outbox").update({"status": "sent"}).eq("id", x).execute()\n',
        )

        violations = _da_regra(check_repository(repo_limpo), RULE_OUTBOX_WRITES)

        assert len(violations) == 1
        assert violations[0].file == "app/services/campanhas.py"
        assert ".update()" in violations[0].detail

    def test_sql_fora_de_migrations(self, repo_limpo):
        _escrever(repo_limpo, "sql/fix.sql", "UPDATE public.channel_outbox SET status = 'sent';\n")

        violations = _da_regra(check_repository(repo_limpo), RULE_OUTBOX_WRITES)

        assert [v.file for v in violations] == ["sql/fix.sql"]

    def test_leitura_nao_e_escrita(self, repo_limpo):
        _escrever(
            repo_limpo,
            "app/services/relatorio.py",
            'supabase.table("channel_outbox").select("status").execute()\n',
        )

        assert check_repository(repo_limpo) == []

    def test_allowlist_configuravel(self, repo_limpo):
        _escrever(
            repo_limpo,
            "app/workers/reenvio.py",
            "supabase.table('channel_outbox').upsert(row).execute()\n",
        )
        config = InvariantConfig(
            outbox_write_allowlist=InvariantConfig().outbox_write_allowlist + ("app/workers/reenvio.py",)
        )

        assert check_repository(repo_limpo, config) == []

    def test_find_outbox_writes(self):
        content = (
            'supabase.table("channel_outbox").insert(a)\n'
            "supabase.from_('channel_outbox').delete()\n"
            "DELETE FROM channel_outbox WHERE id = 1;\n"
        )

        assert find_outbox_writes(content) == [".delete()", ".insert()", "DELETE"]


class TestImports:
    def test_resolve_relative(self):
        assert resolve_relative("app.api.routes", 1, "kernel") == "app.api.routes.kernel"
        assert resolve_relative("app.api.routes", 3, "services.kernel") == "app.services.kernel"
        assert resolve_relative("app.api.routes", 2, None) == "app.api"
        assert resolve_relative("", 0, "httpx") == "httpx"

    def test_extract_python_imports_resolve_alias(self):
        refs = extract_python_imports(
            "app/api/routes/kernel.py",
            "from ...services.kernel import dispatcher\n",
        )

        resolvidos = {r.resolved for r in refs}
        assert "app.services.kernel.dispatcher" in resolvidos
        assert all(r.line == 1 for r in refs)

    def test_init_e_o_proprio_pacote(self):
        refs = extract_python_imports(
            f"{POLICY_DIR}/__init__.py",
            "from . import lead_response\n",
        )

        assert "app.services.kernel.policies.lead_response" in {r.resolved for r in refs}


class TestRelatorio:
    def test_formato_com_violacoes(self):
        violations = [
            Violation(RULE_OUTBOX_WRITES, "b.py", "writes channel_outbox (.insert()) outside dispatcher/allowlist"),
            Violation(RULE_POLICY_IMPORTS, f"{POLICY_DIR}/bad.py", "imports ..dispatcher (line 1)"),
        ]

        relatorio = format_report(violations)
        linhas = relatorio.splitlines()

        assert linhas[0].startswith("Revenue OS Kernel invariants FAILED")
        # Ordem fixa das regras
        assert linhas.index(f"❌ {RULE_POLICY_IMPORTS} (1)") < linhas.index(f"❌ {RULE_OUTBOX_WRITES} (1)")
        assert f"- {POLICY_DIR}/bad.py: imports ..dispatcher (line 1)" in linhas
        assert linhas[-1].startswith("RULES (non-negotiable)")

    def test_main_exit_um(self, repo_limpo, monkeypatch, capsys):
        _escrever(
            repo_limpo,
            f"{POLICY_DIR}/bad.py",
            "from app.services.kernel.dispatcher import execute_decision\n",
        )
        monkeypatch.chdir(repo_limpo)

        assert main() == 1
        saida = capsys.readouterr().out
        assert f"❌ {RULE_POLICY_IMPORTS} (1)" in saida
        assert f"- {POLICY_DIR}/bad.py: imports app.services.kernel.dispatcher" in saida
