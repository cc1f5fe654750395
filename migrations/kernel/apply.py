"""
Script para aplicar migrations do Revenue OS Kernel.

Uso:
    python migrations/kernel/apply.py

Requer: SUPABASE_URL e SUPABASE_SERVICE_KEY no .env e a função exec_sql
no banco. Sem ela, execute os SQLs manualmente no Supabase SQL Editor.
"""
import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from supabase import create_client

# Diretorio das migrations
MIGRATIONS_DIR = Path(__file__).parent

# Ordem das migrations
MIGRATIONS = [
    "001_channel_outbox.sql",
    "002_kernel_tables.sql",
    "003_campaign_runs.sql",
]


def apply_migrations(client) -> list[str]:
    """
    Aplica todas as migrations em ordem.

    Returns:
        Lista de migrations que falharam
    """
    falhas = []
    for migration_file in MIGRATIONS:
        path = MIGRATIONS_DIR / migration_file
        if not path.exists():
            print(f"[SKIP] {migration_file} nao encontrado")
            continue

        print(f"[APPLY] {migration_file}...")
        try:
            client.rpc("exec_sql", {"sql": path.read_text(encoding="utf-8")}).execute()
            print(f"[OK] {migration_file}")
        except Exception as e:
            print(f"[ERROR] {migration_file}: {e}")
            falhas.append(migration_file)
    return falhas


def main() -> int:
    load_dotenv()

    supabase_url = os.getenv("SUPABASE_URL")
    supabase_key = os.getenv("SUPABASE_SERVICE_KEY")
    if not supabase_url or not supabase_key:
        print("Erro: SUPABASE_URL e SUPABASE_SERVICE_KEY necessarios no .env")
        return 1

    print("=== Revenue OS Kernel Migrations ===")
    print(f"URL: {supabase_url}")
    print()

    falhas = apply_migrations(create_client(supabase_url, supabase_key))
    if falhas:
        print()
        print("Execute manualmente no Supabase SQL Editor:")
        for m in falhas:
            print(f"  - migrations/kernel/{m}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
