from pydantic import BaseModel, Field
from typing import List, Optional

# ==================== REQUÊTES ====================

class LoginRequest(BaseModel):
    """Identifiants du formulaire de connexion"""
    email: str = Field(default="", description="Email de l'utilisateur")
    password: str = Field(default="", description="Mot de passe")

class PasswordRecoveryRequest(BaseModel):
    """Demande d'envoi du lien de redéfinition"""
    email: str = Field(..., description="Email du compte")

class TokenExchangeRequest(BaseModel):
    """Jetons reçus après la redirection OAuth"""
    access_token: str = Field(..., description="Jeton d'accès")
    refresh_token: str = Field(..., description="Jeton de rafraîchissement")

class SignUpCredentialsRequest(BaseModel):
    """Étape 1 de l'inscription"""
    first_name: str = Field(..., description="Prénom")
    last_name: str = Field(..., description="Nom de famille")
    email: str = Field(..., description="Email")
    password: str = Field(..., description="Mot de passe")
    confirm_password: str = Field(..., description="Confirmation du mot de passe")
    accept_terms: bool = Field(default=False, description="Conditions d'utilisation acceptées")

class PasswordCheckRequest(BaseModel):
    password: str = Field(default="", description="Mot de passe en cours de saisie")

class RoleChoiceRequest(BaseModel):
    """Étape 2: type d'utilisateur (aluno ou pai)"""
    role: str = Field(..., description="aluno ou pai")

class DependentFieldRequest(BaseModel):
    value: str = Field(default="", description="Email de l'élève")

class DependentEmailsRequest(BaseModel):
    """Emails des élèves liés au responsable"""
    emails: Optional[List[str]] = Field(
        default=None,
        description="Liste complète des champs; absente = champs déjà saisis"
    )

class PasswordUpdateRequest(BaseModel):
    """Nouveau mot de passe (/redefinir-senha)"""
    password: str = Field(..., description="Nouveau mot de passe")
    confirm_password: str = Field(..., description="Confirmation")

class RecoveryTokenRequest(BaseModel):
    """Fragment du lien de récupération (/reset-password)"""
    access_token: Optional[str] = Field(None, description="Jeton d'accès")
    refresh_token: Optional[str] = Field(None, description="Jeton de rafraîchissement")
    type: Optional[str] = Field(None, description="Type de lien, attendu: recovery")

class RecoveryPasswordUpdateRequest(RecoveryTokenRequest):
    password: str = Field(..., description="Nouveau mot de passe")
    confirm_password: str = Field(..., description="Confirmation")

# ==================== RÉPONSES ====================

class ResolutionResponse(BaseModel):
    """Destination calculée à partir du profil"""
    success: bool = Field(..., description="Redirection déterminée")
    redirect_to: Optional[str] = Field(None, description="Route cible")
    error: Optional[str] = Field(None, description="Message d'erreur générique")

class PasswordRequirementResponse(BaseModel):
    label: str = Field(..., description="Critère affiché")
    valid: bool = Field(..., description="Critère satisfait")
