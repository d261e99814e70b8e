"""Error taxonomy shared by the registry services, the HTTP layer and the client."""

from fastapi import status


class RegistryError(Exception):
    """Base class for user-facing registry failures.

    ``code`` is stable and machine readable, ``message`` is the localized text
    shown to the user, ``status_code`` is the HTTP status used by the API.
    """

    code = "registry_error"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Não foi possível concluir a operação"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(RegistryError):
    code = "unauthenticated"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Você precisa estar autenticado"


class ForbiddenNotHost(RegistryError):
    code = "forbidden_not_host"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Somente hosts podem realizar esta ação"


class NotFound(RegistryError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Registro não encontrado"


class ValidationError(RegistryError):
    code = "validation_error"
    status_code = 422
    default_message = "Dados inválidos"


class AlreadyClaimed(RegistryError):
    code = "already_claimed"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Presente já reservado ou recebido"


class SlugGenerationFailed(RegistryError):
    code = "slug_generation_failed"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Não foi possível gerar um endereço único para o evento. Tente novamente."


ERRORS_BY_CODE: dict[str, type[RegistryError]] = {
    cls.code: cls
    for cls in (
        Unauthenticated,
        ForbiddenNotHost,
        NotFound,
        ValidationError,
        AlreadyClaimed,
        SlugGenerationFailed,
    )
}
