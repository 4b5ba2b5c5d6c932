"""
Eccezioni Custom per l'applicazione.
Progetto: Fleet Manager (Gestionale Autotrasporti)

Definisce le eccezioni del dominio. I service le sollevano;
il confine delle azioni (app.core.actions) le converte in ActionResult,
mentre gli errori di autenticazione/autorizzazione vengono propagati
come risposte HTTP dagli exception handler registrati in app.main.

NOTA: BusinessValidationError è volutamente distinta da pydantic.ValidationError.
- pydantic.ValidationError: errori di formato/tipo nei dati di input (gestiti da FastAPI → 422)
- BusinessValidationError: violazioni delle regole di business (es. importo oltre il saldo)
"""

from typing import Any, Dict, Optional

__all__ = [
    "AppException",
    "AuthenticationError",
    "AuthorizationError",
    "NotFoundError",
    "DuplicateError",
    "BusinessValidationError",
    "ValidationError",       # alias di BusinessValidationError
    "HasDependentsError",
    "ConflictError",
    "ExternalServiceError",
]


class AppException(Exception):
    """
    Base exception per l'applicazione.

    Le sottoclassi ridefiniscono solo gli attributi di classe;
    il messaggio di default viene usato quando `detail` non è fornito.

    Attributes:
        status_code: HTTP status code da restituire al client
        error_code: Identificativo univoco dell'errore per il frontend
        default_detail: Messaggio usato se il chiamante non ne passa uno
        detail: Messaggio di errore leggibile per l'utente
        extra: Dizionario con dati aggiuntivi per il frontend
    """

    status_code: int = 500
    error_code: str = "INTERNAL_SERVER_ERROR"
    default_detail: str = "Errore interno del server"

    def __init__(
        self,
        detail: Optional[str] = None,
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Inizializza l'eccezione.

        Args:
            detail: Messaggio di errore dettagliato (default: quello di classe)
            error_code: Identificativo univoco (default: quello di classe)
            extra: Dati aggiuntivi da passare al frontend (default: None)
        """
        self.detail = detail if detail is not None else self.default_detail
        self.error_code = error_code if error_code is not None else self.error_code
        self.extra = extra
        self.status_code = self.__class__.status_code
        super().__init__(self.detail)


class AuthenticationError(AppException):
    """
    Nessuna sessione valida (token assente, scaduto o utente disattivato).
    """

    status_code: int = 401
    error_code: str = "UNAUTHENTICATED"
    default_detail: str = "Autenticazione richiesta"


class AuthorizationError(AppException):
    """
    Sessione presente ma ruolo insufficiente.

    Esempi di utilizzo:
        - "Solo gli amministratori possono eliminare i camion"
        - "Non puoi modificare il tuo stesso ruolo"
    """

    status_code: int = 403
    error_code: str = "FORBIDDEN"
    default_detail: str = "Accesso non autorizzato"


class NotFoundError(AppException):
    """
    Risorsa non trovata nell'organizzazione del chiamante.

    Una risorsa di un'altra organizzazione è indistinguibile
    da una risorsa inesistente.
    """

    status_code: int = 404
    error_code: str = "RESOURCE_NOT_FOUND"
    default_detail: str = "Risorsa non trovata"


class DuplicateError(AppException):
    """
    Violazione di un vincolo di unicità
    (targa, numero patente, numero fattura, email, nome categoria).
    """

    status_code: int = 409
    error_code: str = "DUPLICATE_RESOURCE"
    default_detail: str = "Risorsa già esistente"


class BusinessValidationError(ValueError, AppException):
    """
    Eccezione sollevata per violazioni delle regole di business logic.

    Eredita da ValueError per essere catturata dai validatori Pydantic.

    Esempi di utilizzo:
        - "L'importo supera il saldo della fattura"
        - "Il conducente non ha un indirizzo email"
        - "Non è possibile registrare pagamenti su una fattura annullata"
    """

    status_code: int = 422
    error_code: str = "BUSINESS_VALIDATION_ERROR"
    default_detail: str = "Validazione dati fallita"

    def __init__(
        self,
        detail: Optional[str] = None,
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        # Chiama AppException.__init__ direttamente per evitare ValueError
        AppException.__init__(self, detail, error_code, extra)


# Alias per compatibilità
ValidationError = BusinessValidationError


class HasDependentsError(AppException):
    """
    Eliminazione bloccata da record collegati
    (camion con viaggi, fattura con pagamenti, viaggio con spese).
    """

    status_code: int = 409
    error_code: str = "HAS_DEPENDENTS"
    default_detail: str = "Impossibile eliminare: esistono record collegati"


class ConflictError(AppException):
    """
    Operazione non eseguibile nello stato corrente della risorsa
    (es. richiesta di modifica già revisionata).
    """

    status_code: int = 409
    error_code: str = "CONFLICT_STATE"
    default_detail: str = "Conflitto di stato"


class ExternalServiceError(AppException):
    """
    Un servizio esterno invocato in modo sincrono (email, webhook)
    ha restituito un errore.
    """

    status_code: int = 502
    error_code: str = "EXTERNAL_SERVICE_ERROR"
    default_detail: str = "Servizio esterno non disponibile"
