"""
Schemas Pydantic condivisi
Progetto: Fleet Manager (Gestionale Autotrasporti)

- ActionResult: esito discriminato delle azioni di dominio (mutazioni)
- Page: lista paginata generica
"""

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field, computed_field

T = TypeVar("T")


class ActionResult(BaseModel, Generic[T]):
    """
    Esito di un'azione di dominio.

    success=True  → data contiene il risultato
    success=False → error contiene il messaggio per l'utente,
                    error_code l'identificativo per il frontend
    """

    success: bool = Field(..., description="Esito dell'azione")
    data: Optional[T] = Field(None, description="Risultato in caso di successo")
    error: Optional[str] = Field(None, description="Messaggio di errore")
    error_code: Optional[str] = Field(None, description="Codice errore")
    warning: Optional[str] = Field(
        None,
        description="Avviso non bloccante (es. email non inviata)",
    )

    @classmethod
    def ok(cls, data: Optional[T] = None, warning: Optional[str] = None) -> "ActionResult[T]":
        return cls(success=True, data=data, warning=warning)

    @classmethod
    def fail(cls, error: str, error_code: Optional[str] = None) -> "ActionResult[T]":
        return cls(success=False, error=error, error_code=error_code)


class Page(BaseModel, Generic[T]):
    """Lista paginata con metadati."""

    items: list[T] = Field(default_factory=list)
    total: int = Field(..., ge=0, description="Numero totale di elementi")
    page: int = Field(..., ge=1, description="Numero pagina corrente")
    per_page: int = Field(..., ge=1, description="Elementi per pagina")

    @computed_field
    def total_pages(self) -> int:
        """Numero totale di pagine: ceil(total / per_page)."""
        if self.per_page > 0:
            return (self.total + self.per_page - 1) // self.per_page
        return 0


__all__ = ["ActionResult", "Page"]
