"""
Validations côté formulaire: elles bloquent la soumission et n'atteignent
jamais le service distant.
"""

import re
from typing import Dict, List, NamedTuple, Optional

# Formulaire de contact: un @ et un domaine avec TLD d'au moins 2 lettres
CONTACT_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
# Emails des dépendants (étape responsable de l'inscription)
SIMPLE_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

MIN_PASSWORD_LENGTH = 8
MIN_PHONE_DIGITS = 10


class PasswordRequirement(NamedTuple):
    label: str
    valid: bool


def password_requirements(password: str) -> List[PasswordRequirement]:
    """Les quatre critères indépendants affichés sous le champ mot de passe"""
    return [
        PasswordRequirement("Mínimo 8 caracteres", len(password) >= MIN_PASSWORD_LENGTH),
        PasswordRequirement("Uma letra maiúscula", re.search(r"[A-Z]", password) is not None),
        PasswordRequirement("Uma letra minúscula", re.search(r"[a-z]", password) is not None),
        PasswordRequirement("Um número", re.search(r"[0-9]", password) is not None),
    ]


def is_password_valid(password: str) -> bool:
    return all(requirement.valid for requirement in password_requirements(password))


def do_passwords_match(password: str, confirmation: str) -> bool:
    return password == confirmation and len(password) > 0


def validate_signup_credentials(password: str, confirmation: str, accept_terms: bool) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    if not is_password_valid(password):
        missing = [req.label for req in password_requirements(password) if not req.valid]
        errors["password"] = "A senha não atende aos requisitos: " + ", ".join(missing) + "."
    if not do_passwords_match(password, confirmation):
        errors["confirm_password"] = "As senhas não coincidem."
    if not accept_terms:
        errors["accept_terms"] = "Você precisa aceitar os Termos de Uso e a Política de Privacidade."
    return errors


def validate_reset_password(password: str, require_letter_and_digit: bool = False) -> Optional[str]:
    """Force du nouveau mot de passe; None si acceptable"""
    if len(password) < MIN_PASSWORD_LENGTH:
        return "A senha deve ter no mínimo 8 caracteres."
    if require_letter_and_digit:
        if not re.search(r"[A-Za-z]", password):
            return "A senha deve conter letras."
        if not re.search(r"[0-9]", password):
            return "A senha deve conter números."
    return None


def is_full_name(name: str) -> bool:
    words = name.strip().split()
    return len(words) >= 2 and all(len(word) >= 2 for word in words)


def is_contact_email(email: str) -> bool:
    return CONTACT_EMAIL_RE.match(email) is not None


def is_simple_email(email: str) -> bool:
    return SIMPLE_EMAIL_RE.match(email) is not None


def digits_only(value: str) -> str:
    return re.sub(r"\D", "", value)


def is_phone_valid(phone: str) -> bool:
    """Téléphone optionnel: vide accepté, sinon au moins 10 chiffres"""
    return not phone or len(digits_only(phone)) >= MIN_PHONE_DIGITS


def format_phone_number(value: str) -> str:
    """Masque (99) 99999-9999 appliqué pendant la saisie"""
    numbers = digits_only(value)
    if len(numbers) > 11:
        return value[:15]

    formatted = numbers
    if len(numbers) > 0:
        formatted = f"({numbers[:2]}"
    if len(numbers) > 2:
        formatted += f") {numbers[2:7]}"
    if len(numbers) > 7:
        formatted += f"-{numbers[7:11]}"
    return formatted


def validate_contact(name: str, email: str, phone: str) -> Dict[str, str]:
    """Les trois champs sont vérifiés ensemble"""
    errors: Dict[str, str] = {}
    if not is_full_name(name):
        errors["name"] = "Por favor, insira seu nome completo (pelo menos duas palavras)."
    if not is_contact_email(email):
        errors["email"] = "Por favor, insira um e-mail válido (ex: nome@email.com)."
    if not is_phone_valid(phone):
        errors["phone"] = "Por favor, insira um número de celular válido."
    return errors


def validate_login(email: str, password: str) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    if not email.strip():
        errors["email"] = "Informe seu e-mail."
    if not password:
        errors["password"] = "Informe sua senha."
    return errors
