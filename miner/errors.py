"""
Exception hierarchy for the miner. Each class carries the HTTP status the
API layer answers with and a user-facing (pt-BR) default message.
"""
from __future__ import annotations

from typing import Optional


class MinerError(Exception):
    status_code = 500
    default_message = "Erro inesperado. Tente novamente."

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None) -> None:
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class IdentityNotFoundError(MinerError):
    status_code = 422
    default_message = "Não foi possível identificar o produto. Verifique o link."


class InvalidUrlError(MinerError):
    status_code = 400
    default_message = "URL inválida. Por favor, forneça um link válido."


class MalformedPayloadError(MinerError):
    status_code = 502
    default_message = "Resposta inesperada do serviço externo."


class RateLimitedError(MinerError):
    status_code = 429
    default_message = "Limite de requisições excedido. Aguarde um momento e tente novamente."


class PaymentRequiredError(MinerError):
    status_code = 402
    default_message = "Créditos insuficientes. Adicione créditos à sua conta."


class NotConnectedError(MinerError):
    status_code = 401
    default_message = "Conta do Pinterest não conectada. Conecte sua conta e tente novamente."


class GenerationTimeoutError(MinerError):
    status_code = 504
    default_message = "Timeout: a geração demorou mais de 3 minutos."


class UpstreamError(MinerError):
    status_code = 502
    default_message = "Alguns serviços externos falharam. Tente novamente."


class ConfigurationError(MinerError):
    status_code = 503
    default_message = "Serviço não configurado."


def for_status(status_code: int, detail: Optional[str] = None) -> MinerError:
    """Map an upstream HTTP status to the matching error."""
    if status_code == 429:
        return RateLimitedError()
    if status_code == 402:
        return PaymentRequiredError()
    return UpstreamError(detail)
