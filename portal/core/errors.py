from typing import Dict, Optional


class PortalError(Exception):
    """Erreur de base du portail, porte un message destiné à l'utilisateur"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class FormValidationError(PortalError):
    """Erreurs de formulaire par champ, détectées avant tout appel distant"""

    def __init__(self, errors: Dict[str, str], message: str = "Dados do formulário inválidos."):
        super().__init__(message)
        self.errors = dict(errors)


class BackendError(PortalError):
    """Rejet renvoyé par le service distant (auth, tables ou RPC)"""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class ProfileLookupError(PortalError):
    pass


class EmailAlreadyRegisteredError(PortalError):
    pass


class WizardNotFoundError(PortalError):
    pass


class WizardStateError(PortalError):
    pass
