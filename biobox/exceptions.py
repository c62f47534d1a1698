"""
Exceções do domínio. Cada uma carrega o status HTTP usado pelos handlers
registrados em ``biobox.utils.errors``.
"""


class BioboxError(Exception):
    """Erro base da aplicação"""
    status_code = 500

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(BioboxError):
    """Dados obrigatórios ausentes ou inválidos"""
    status_code = 400


class FragmentAllocationError(ValidationError):
    """Fragmentação não fecha com a quantidade total do pedido"""


class AuthenticationError(BioboxError):
    """Sem sessão autenticada ou credenciais inválidas"""
    status_code = 401


class PermissionDeniedError(BioboxError):
    """Usuário autenticado sem permissão para a ação"""
    status_code = 403


class NotFoundError(BioboxError):
    status_code = 404


class InvalidTransitionError(BioboxError):
    """Transição de status não permitida pela máquina de estados"""
    status_code = 409


class OrderUpdateError(BioboxError):
    """Falha ao gravar uma alteração de pedido (remoto e local)"""
    status_code = 500


class RemoteStoreError(BioboxError):
    """Falha na comunicação com o banco de documentos remoto"""
    status_code = 502
