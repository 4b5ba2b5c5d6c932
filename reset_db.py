import argparse
import asyncio
import os
import sys

# Aggiungi backend/ alla PYTHONPATH per importare app.*
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "backend"))

from app.core.config import settings
from app.core.database import engine
from app.models import Base


async def reset():
    print(f"Connessione al database ({settings.app_env}), eliminazione tabelle...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        print("Tabelle eliminate. Creazione nuove tabelle...")
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    print(f"Database resettato con successo! Tabelle: {', '.join(sorted(Base.metadata.tables))}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Elimina e ricrea tutte le tabelle del gestionale autotrasporti")
    parser.add_argument("--yes", action="store_true", help="Non chiedere conferma")
    args = parser.parse_args()

    if settings.is_production and not args.yes:
        sys.exit("Ambiente di produzione: rieseguire con --yes per confermare il reset")

    asyncio.run(reset())
