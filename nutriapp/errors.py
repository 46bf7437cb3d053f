"""
Erros de domínio.

Os serviços levantam estas exceções; a camada HTTP converte-as no envelope
`{"success": false, "message": ..., "code": ...}` com o status correspondente.
"""
from __future__ import annotations


class NutriAppError(Exception):
    status_code = 400
    code = "error"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class DadosInvalidos(NutriAppError, ValueError):
    status_code = 400
    code = "invalid_data"


class NaoEncontrado(NutriAppError, LookupError):
    status_code = 404
    code = "not_found"


class Conflito(NutriAppError):
    status_code = 409
    code = "conflict"


class AcessoNegado(NutriAppError):
    status_code = 403
    code = "forbidden"


class NaoAutenticado(NutriAppError):
    status_code = 401
    code = "unauthorized"
