"""
Esecuzione delle azioni di dominio
Progetto: Fleet Manager (Gestionale Autotrasporti)

Ogni mutazione esposta dall'API passa da run_action, che:
- esegue l'operazione e fa commit in caso di successo
- fa rollback e converte le AppException in ActionResult.fail
- registra il traceback degli errori imprevisti e restituisce
  all'utente un messaggio generico specifico dell'azione
"""

import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from fastapi import Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AppException, AuthenticationError, AuthorizationError
from app.schemas.common import ActionResult

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_action(
    db: AsyncSession,
    response: Response,
    operation: Callable[[], Awaitable[Any]],
    generic_message: str,
    warning: Optional[str] = None,
) -> ActionResult[T]:
    """
    Esegue un'azione di dominio all'interno della transazione della richiesta.

    Gli errori di autenticazione e autorizzazione vengono propagati
    e gestiti dagli exception handler dell'applicazione.

    Args:
        db: Sessione della richiesta
        response: Risposta FastAPI, usata per impostare lo status code
        operation: Coroutine che esegue la mutazione e restituisce il risultato serializzabile
        generic_message: Messaggio per errori imprevisti (es. "Impossibile creare il camion")
        warning: Avviso non bloccante da allegare al successo

    Returns:
        ActionResult con il risultato o l'errore
    """
    try:
        data = await operation()
        await db.commit()
    except (AuthenticationError, AuthorizationError):
        await db.rollback()
        raise
    except AppException as exc:
        await db.rollback()
        logger.warning("Azione rifiutata (%s): %s", exc.error_code, exc.detail)
        response.status_code = exc.status_code
        return ActionResult.fail(exc.detail, exc.error_code)
    except Exception:
        await db.rollback()
        logger.exception("Errore imprevisto: %s", generic_message)
        response.status_code = 500
        return ActionResult.fail(generic_message, "INTERNAL_SERVER_ERROR")

    # L'operazione può costruire da sé l'esito (es. successo con avviso)
    if isinstance(data, ActionResult):
        return data

    return ActionResult.ok(data, warning=warning)


__all__ = ["run_action"]
