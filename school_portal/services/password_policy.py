from typing import List

from school_portal.core.exceptions import ValidationFailed


def password_problems(password: str, settings: dict) -> List[str]:
    problems = []
    min_length = settings.get("passwordMinLength", 8)
    if len(password) < min_length:
        problems.append(f"Password must be at least {min_length} characters long")
    if settings.get("passwordRequireUppercase") and not any(c.isupper() for c in password):
        problems.append("Password must contain an uppercase letter")
    if settings.get("passwordRequireLowercase") and not any(c.islower() for c in password):
        problems.append("Password must contain a lowercase letter")
    if settings.get("passwordRequireNumbers") and not any(c.isdigit() for c in password):
        problems.append("Password must contain a number")
    if settings.get("passwordRequireSpecialChars") and all(c.isalnum() for c in password):
        problems.append("Password must contain a special character")
    return problems


def check_password(password: str, settings: dict) -> None:
    """Raise ValidationFailed listing every rule of the configured policy the password breaks."""
    problems = password_problems(password, settings)
    if problems:
        raise ValidationFailed("Password does not meet the password policy.", details={"errors": problems})
